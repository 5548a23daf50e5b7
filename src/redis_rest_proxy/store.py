"""
Store client provider.

This module provides:
- StoreClient: the shared redis.asyncio client, returning replies in their raw RESP shape
- StoreBatch: one pipeline or MULTI/EXEC context yielding (error, value) pairs
- AutoPipeliner: coalesces concurrent single commands into one round trip
- get_store / set_store / close_store: the process-wide client slot

Requires redis (async): pip install redis
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, Tuple, runtime_checkable

import redis.asyncio as redis
from redis.asyncio.sentinel import Sentinel
from redis.exceptions import WatchError

from .logging import get_logger, redact_secret
from .settings import StoreConfig
from .values import StoreValue, error_message

CommandResult = Tuple[Optional[str], StoreValue]


@runtime_checkable
class Batch(Protocol):
    def queue(self, command: str, *args: str) -> None:
        ...

    async def execute(self) -> list[CommandResult] | None:
        ...


@runtime_checkable
class Store(Protocol):
    """What the request handlers need from a store client."""

    async def call(self, command: str, *args: str) -> Any:
        ...

    def pipeline(self) -> Batch:
        ...

    def multi(self) -> Batch:
        ...

    async def ping(self) -> Any:
        ...

    async def close(self) -> None:
        ...


def _raw_replies(client: redis.Redis) -> redis.Redis:
    # Drop redis-py's per-command reply parsing so SET answers b"OK", PING b"PONG", HGETALL a flat list.
    client.response_callbacks.clear()
    return client


def _as_pair(reply: Any) -> CommandResult:
    if isinstance(reply, Exception):
        return (error_message(reply), None)
    return (None, reply)


class StoreBatch:
    """A queued pipeline or transaction. Single use."""

    def __init__(self, pipe: Any, mode: str):
        self._pipe = pipe
        self.mode = mode

    def queue(self, command: str, *args: str) -> None:
        self._pipe.execute_command(command, *args)

    async def execute(self) -> list[CommandResult] | None:
        """
        Run every queued command in one round trip.

        Returns:
            One (error, value) pair per queued command in queue order, or None
            when the store discarded a transaction (EXEC answered nil).
        """
        try:
            replies = await self._pipe.execute(raise_on_error=False)
        except WatchError:
            return None
        if replies is None:
            return None
        return [_as_pair(reply) for reply in replies]


class AutoPipeliner:
    """
    Send single commands issued in the same event-loop iteration as one pipeline.

    Every caller gets a future resolved with its own reply, or failed with its
    own error reply. A transport failure fails every command of the flush.
    """

    def __init__(self, client: Any):
        self._client = client
        self._pending: list[tuple[tuple[str, ...], asyncio.Future]] = []
        self._tasks: set[asyncio.Task] = set()
        self._scheduled = False
        self.flushes = 0

    def submit(self, command: str, *args: str) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append(((command, *args), future))
        if not self._scheduled:
            self._scheduled = True
            task = loop.create_task(self._flush())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return future

    async def _flush(self) -> None:
        self._scheduled = False
        pending, self._pending = self._pending, []
        if not pending:
            return
        self.flushes += 1
        pipe = self._client.pipeline(transaction=False)
        for command_args, _ in pending:
            pipe.execute_command(*command_args)
        try:
            replies = await pipe.execute(raise_on_error=False)
        except Exception as exc:
            for _, future in pending:
                if not future.done():
                    future.set_exception(exc)
            return
        for (_, future), reply in zip(pending, replies):
            if future.done():
                continue
            if isinstance(reply, Exception):
                future.set_exception(reply)
            else:
                future.set_result(reply)


class StoreClient:
    """Shared client over one redis-py connection pool."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        config: StoreConfig | None = None,
        sentinel: Sentinel | None = None,
    ):
        self.redis = client
        self.config = config or StoreConfig()
        self.sentinel = sentinel
        self.autopipeliner = AutoPipeliner(client) if self.config.auto_pipelining else None

    async def call(self, command: str, *args: str) -> Any:
        if self.autopipeliner is not None:
            return await self.autopipeliner.submit(command, *args)
        return await self.redis.execute_command(command, *args)

    def pipeline(self) -> StoreBatch:
        return StoreBatch(self.redis.pipeline(transaction=False), "pipeline")

    def multi(self) -> StoreBatch:
        return StoreBatch(self.redis.pipeline(transaction=True), "transaction")

    async def ping(self) -> Any:
        return await self.call("PING")

    async def close(self) -> None:
        await self.redis.aclose()
        if self.sentinel is not None:
            for sentinel_client in self.sentinel.sentinels:
                await sentinel_client.aclose()


def create_store(config: StoreConfig) -> StoreClient:
    """Build a client for the configured topology. Does not connect."""
    logger = get_logger()
    if config.sentinel_mode:
        logger.info(
            f"Creating Redis client in Sentinel mode with {len(config.sentinels)} sentinels",
            master_name=config.master_name,
            master_password=redact_secret(config.master_password),
            sentinel_password=redact_secret(config.sentinel_password),
            db=config.db,
            auto_pipelining=config.auto_pipelining,
        )
        sentinel_kwargs: dict[str, Any] = {}
        if config.sentinel_password:
            sentinel_kwargs["password"] = config.sentinel_password
        sentinel = Sentinel(
            [endpoint.as_tuple() for endpoint in config.sentinels],
            sentinel_kwargs=sentinel_kwargs,
            password=config.master_password,
            db=config.db,
            decode_responses=False,
        )
        client = _raw_replies(sentinel.master_for(config.master_name))
        return StoreClient(client, config=config, sentinel=sentinel)

    logger.info(
        f"Creating Redis client in single-instance mode with host: {config.host}, port: {config.port}",
        db=config.db,
        password=redact_secret(config.password),
        auto_pipelining=config.auto_pipelining,
    )
    client = redis.Redis(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
        decode_responses=False,
    )
    return StoreClient(_raw_replies(client), config=config)


class StoreProvider:
    """Holds the process-wide store client, built from the environment on first use."""

    def __init__(self) -> None:
        self._client: Store | None = None

    def get(self, config: StoreConfig | None = None) -> Store:
        if self._client is None:
            self._client = create_store(config or StoreConfig.from_env())
        return self._client

    def set(self, client: Store | None) -> None:
        self._client = client

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.close()


_provider = StoreProvider()


def get_store(config: StoreConfig | None = None) -> Store:
    """The shared client, built from `config` (or the environment) on first call."""
    return _provider.get(config)


def set_store(client: Store | None) -> None:
    """Replace the shared client. Test seam; the running service never calls it."""
    _provider.set(client)


async def close_store() -> None:
    await _provider.close()


__all__ = [
    "Batch",
    "CommandResult",
    "Store",
    "StoreBatch",
    "AutoPipeliner",
    "StoreClient",
    "StoreProvider",
    "create_store",
    "get_store",
    "set_store",
    "close_store",
]
