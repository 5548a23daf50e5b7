"""
Tests for the error taxonomy.
"""
import pytest

from redis_rest_proxy.errors import (
    AuthenticationError,
    BatchExecutionError,
    ConfigurationError,
    ErrorCode,
    ErrorContext,
    ProxyError,
    RequestShapeError,
    Result,
    StoreError,
    status_for,
)


class TestErrorCodes:
    """Test error code enumeration."""

    def test_error_codes_are_strings(self):
        assert ErrorCode.UNAUTHORIZED.value.startswith("ERR_")
        assert ErrorCode.BATCH_FAILED.value.startswith("ERR_")

    def test_error_codes_unique(self):
        values = [e.value for e in ErrorCode]
        assert len(values) == len(set(values))


class TestErrorContext:
    def test_to_dict(self):
        ctx = ErrorContext(request_id="req_1", mode="transaction", extra={"size": 3})

        assert ctx.to_dict() == {"request_id": "req_1", "mode": "transaction", "command": None, "size": 3}


class TestProxyErrors:
    """Test status codes and messages per error kind."""

    @pytest.mark.parametrize(
        ("error", "status", "code"),
        [
            (AuthenticationError(), 401, ErrorCode.UNAUTHORIZED),
            (RequestShapeError("bad"), 400, ErrorCode.REQUEST_SHAPE),
            (BatchExecutionError("Pipeline failed"), 400, ErrorCode.BATCH_FAILED),
            (StoreError("WRONGTYPE"), 400, ErrorCode.STORE_ERROR),
            (ConfigurationError("bad config"), 500, ErrorCode.CONFIG_ERROR),
        ],
    )
    def test_status_and_code(self, error, status, code):
        assert error.status_code == status
        assert error.code == code
        assert status_for(error) == status

    def test_default_unauthorized_message(self):
        assert str(AuthenticationError()) == "Unauthorized"

    def test_code_override(self):
        error = RequestShapeError("No command provided in URL.", code=ErrorCode.MISSING_COMMAND)

        assert error.code == ErrorCode.MISSING_COMMAND
        assert RequestShapeError("x").code == ErrorCode.REQUEST_SHAPE

    def test_to_dict_includes_cause(self):
        cause = RuntimeError("socket closed")
        error = StoreError("socket closed", cause=cause, context=ErrorContext(command="get"))

        d = error.to_dict()

        assert d["error_type"] == "StoreError"
        assert d["code"] == ErrorCode.STORE_ERROR.value
        assert d["cause"] == "socket closed"
        assert d["context"]["command"] == "get"

    def test_hierarchy(self):
        assert issubclass(StoreError, ProxyError)
        assert issubclass(BatchExecutionError, ProxyError)

    def test_unknown_errors_map_to_bad_request(self):
        assert status_for(ValueError("nope")) == 400


class TestResult:
    def test_success(self):
        result = Result.success([1, 2])

        assert result.ok
        assert result.value == [1, 2]
        assert result.error is None

    def test_failure(self):
        error = RequestShapeError("bad")
        result = Result.failure(error)

        assert not result.ok
        assert result.error is error
        assert result.value is None
