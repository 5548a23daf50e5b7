"""
Shared test fixtures and fakes for the REST proxy tests.

This module provides:
- An in-memory store implementing the handler-facing store interface
- A factory for starlette Requests built from raw ASGI scopes
- An httpx client wired to the ASGI app with a known token
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio
from redis.exceptions import ResponseError
from starlette.requests import Request

from redis_rest_proxy.auth import TokenAuthAdapter
from redis_rest_proxy.store import set_store

TEST_TOKEN = "test-token-123"


# =============================================================================
# In-Memory Store (for testing)
# =============================================================================


class FakeBatch:
    def __init__(self, store: FakeStore, mode: str) -> None:
        self.store = store
        self.mode = mode
        self.queued: list[tuple[str, ...]] = []

    def queue(self, command: str, *args: str) -> None:
        self.queued.append((command, *args))

    async def execute(self) -> list[tuple[str | None, Any]] | None:
        if self.mode == "transaction" and self.store.discard_transactions:
            return None
        self.store.executed_batches.append((self.mode, list(self.queued)))
        results: list[tuple[str | None, Any]] = []
        for command in self.queued:
            try:
                results.append((None, self.store.apply(*command)))
            except ResponseError as exc:
                results.append((str(exc), None))
        return results


class FakeStore:
    """Dict-backed stand-in for StoreClient with a handful of real commands."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.calls: list[tuple[str, ...]] = []
        self.executed_batches: list[tuple[str, list[tuple[str, ...]]]] = []
        self.discard_transactions = False
        self.fail_with: Exception | None = None
        self.closed = False

    def apply(self, command: str, *args: str) -> Any:
        name = command.lower()
        if name == "set":
            self.data[args[0]] = args[1]
            return "OK"
        if name == "get":
            return self.data.get(args[0])
        if name == "incr":
            value = int(self.data.get(args[0], "0")) + 1
            self.data[args[0]] = str(value)
            return value
        if name == "hset":
            fields = self.data.setdefault(args[0], {})
            pairs = list(zip(args[1::2], args[2::2]))
            fields.update(pairs)
            return len(pairs)
        if name == "hgetall":
            return dict(self.data.get(args[0], {}))
        if name == "echo":
            return args[0]
        if name == "ping":
            return "PONG"
        raise ResponseError(f"unknown command '{command}'")

    async def call(self, command: str, *args: str) -> Any:
        self.calls.append((command, *args))
        if self.fail_with is not None:
            raise self.fail_with
        return self.apply(command, *args)

    def pipeline(self) -> FakeBatch:
        return FakeBatch(self, "pipeline")

    def multi(self) -> FakeBatch:
        return FakeBatch(self, "transaction")

    async def ping(self) -> Any:
        return await self.call("PING")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_store() -> Iterator[FakeStore]:
    store = FakeStore()
    set_store(store)
    yield store
    set_store(None)


# =============================================================================
# Request Factory
# =============================================================================


@pytest.fixture
def make_request() -> Callable[..., Request]:
    def _build(
        method: str = "GET",
        path: str = "/",
        *,
        query: str = "",
        headers: dict[str, str] | None = None,
        body: bytes | str = b"",
    ) -> Request:
        raw_headers = [
            (key.lower().encode("latin-1"), str(value).encode("latin-1"))
            for key, value in (headers or {}).items()
        ]
        payload = body.encode("utf-8") if isinstance(body, str) else body
        scope = {
            "type": "http",
            "method": method,
            "path": unquote(path),
            "raw_path": path.encode("latin-1"),
            "query_string": query.encode("latin-1"),
            "headers": raw_headers,
        }

        async def receive() -> dict[str, Any]:
            return {"type": "http.request", "body": payload, "more_body": False}

        return Request(scope, receive)

    return _build


# =============================================================================
# HTTP Client
# =============================================================================


@pytest.fixture
def auth_token() -> str:
    return TEST_TOKEN


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest_asyncio.fixture
async def client(fake_store: FakeStore, monkeypatch) -> AsyncIterator[httpx.AsyncClient]:
    from redis_rest_proxy import app as app_module

    monkeypatch.setattr(app_module.app.state, "auth_adapter", TokenAuthAdapter(token=TEST_TOKEN), raising=False)
    transport = httpx.ASGITransport(app=app_module.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
