"""HTTP front for the Redis REST proxy."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from redis.exceptions import RedisError

from . import __version__
from .auth import TokenAuthAdapter
from .batch import BatchMode, execute_batch
from .commands import build_command, read_batch
from .errors import AuthenticationError, BatchExecutionError, ErrorCode, ProxyError, StoreError, status_for
from .formatting import format_reply, to_json_value
from .logging import AccessLog, configure_logging, elapsed_ms, get_logger
from .settings import get_settings, load_env
from .store import Store, close_store, get_store

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

load_env()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # A malformed configuration raises here and the server never starts serving.
    settings = get_settings()
    logger = configure_logging(level=settings.log_level, json_output=settings.log_format == "json")
    if settings.uses_default_token:
        logger.warning("AUTH_TOKEN is not set; the default placeholder token is in use")

    app.state.settings = settings
    app.state.auth_adapter = TokenAuthAdapter(token=settings.auth_token)
    get_store(settings.store)
    logger.info(f"Redis REST proxy listening on port {settings.server_port}")
    try:
        yield
    finally:
        logger.info("Shutting down, closing Redis connection")
        await close_store()


app = FastAPI(title="Redis REST Proxy", version=__version__, lifespan=lifespan)


class HealthResponse(BaseModel):
    status: str
    redis: Any = None


def store_dependency() -> Store:
    return get_store()


async def require_auth(request: Request) -> None:
    adapter: TokenAuthAdapter | None = getattr(request.app.state, "auth_adapter", None)
    if adapter is None:
        adapter = TokenAuthAdapter(token=get_settings().auth_token)
        request.app.state.auth_adapter = adapter
    auth = adapter.authenticate(request)
    if not auth.ok:
        get_logger().warning("Rejected request", reason=auth.reason, source=auth.source)
        raise AuthenticationError()


@app.exception_handler(ProxyError)
async def _proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"error": exc.message})


@app.middleware("http")
async def _access_log(request: Request, call_next):
    logger = get_logger()
    started = time.perf_counter()
    with logger.request_context(request.method, request.url.path) as request_id:
        response = await call_next(request)
        logger.log_access(
            AccessLog(
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=elapsed_ms(started),
            )
        )
    response.headers["X-Request-Id"] = request_id
    return response


@app.api_route("/health", methods=ALL_METHODS, response_model=HealthResponse)
async def health(store: Store = Depends(store_dependency)) -> HealthResponse:
    try:
        reply = await store.ping()
    except RedisError as exc:
        get_logger().log_error(exc, "Health check failed")
        raise StoreError(str(exc), cause=exc) from exc
    return HealthResponse(status="healthy", redis=to_json_value(reply))


async def _run_batch(request: Request, store: Store, mode: BatchMode) -> list[dict[str, Any]]:
    logger = get_logger()
    with logger.bind(mode=mode.value):
        parsed = await read_batch(request)
        if not parsed.ok:
            logger.error(f"{mode.value}: Malformed JSON input", error=parsed.error.message)
            raise parsed.error

        try:
            results = await execute_batch(store, parsed.value, mode)
            return [
                {"error": error} if error is not None else {"result": format_reply(value, request.headers)}
                for error, value in results
            ]
        except ProxyError as exc:
            logger.log_error(exc, f"{mode.value} execution error")
            raise
        except Exception as exc:
            logger.log_error(exc, f"{mode.value} execution error")
            raise BatchExecutionError(str(exc), cause=exc) from exc


@app.post("/pipeline", dependencies=[Depends(require_auth)])
async def pipeline(request: Request, store: Store = Depends(store_dependency)) -> list[dict[str, Any]]:
    return await _run_batch(request, store, BatchMode.PIPELINE)


@app.post("/multi-exec", dependencies=[Depends(require_auth)])
async def multi_exec(request: Request, store: Store = Depends(store_dependency)) -> list[dict[str, Any]]:
    return await _run_batch(request, store, BatchMode.TRANSACTION)


@app.api_route("/{path:path}", methods=ALL_METHODS, dependencies=[Depends(require_auth)])
async def run_command(request: Request, store: Store = Depends(store_dependency)) -> dict[str, Any]:
    logger = get_logger()
    built = await build_command(request)
    if not built.ok:
        logger.log_error(built.error, "Generic command error")
        raise built.error

    command = built.value
    with logger.bind(command=command.name):
        try:
            reply = await store.call(command.name, *command.args)
            return {"result": format_reply(reply, request.headers)}
        except RedisError as exc:
            logger.log_error(exc, "Generic command error")
            raise StoreError(str(exc), cause=exc) from exc
        except Exception as exc:
            logger.log_error(exc, "Generic command error")
            raise ProxyError(str(exc), code=ErrorCode.INTERNAL_ERROR, cause=exc) from exc
