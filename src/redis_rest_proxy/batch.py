from __future__ import annotations

from enum import Enum
from typing import Any, Sequence

from .commands import stringify
from .errors import BatchExecutionError, ErrorContext, RequestShapeError
from .store import CommandResult, Store

# Never queued: the batch mode owns MULTI/EXEC.
CONTROL_COMMANDS = frozenset({"WATCH", "MULTI", "EXEC", "DISCARD"})


class BatchMode(str, Enum):
    PIPELINE = "pipeline"
    TRANSACTION = "transaction"

    @property
    def failure_message(self) -> str:
        return "Pipeline failed" if self is BatchMode.PIPELINE else "Transaction failed"


async def execute_batch(store: Store, commands: Sequence[Sequence[Any]], mode: BatchMode) -> list[CommandResult]:
    """
    Queue every command into one pipeline or transaction and run it in a single round trip.

    Results keep submission order. A pipeline reports per-command errors in
    place; a transaction is all-or-nothing at the store, so a discarded EXEC
    fails the whole batch.
    """
    batch = store.pipeline() if mode is BatchMode.PIPELINE else store.multi()
    for entry in commands:
        if not isinstance(entry, (list, tuple)) or len(entry) == 0:
            raise BatchExecutionError(
                "Each command must be a non-empty array",
                context=ErrorContext(mode=mode.value),
            )
        name, *args = entry
        command = stringify(name)
        if command.upper() in CONTROL_COMMANDS:
            raise RequestShapeError(
                f"{command.upper()} is not allowed inside a batch",
                context=ErrorContext(mode=mode.value, command=command),
            )
        batch.queue(command, *(stringify(arg) for arg in args))

    results = await batch.execute()
    if results is None:
        raise BatchExecutionError(mode.failure_message, context=ErrorContext(mode=mode.value))
    return list(results)


__all__ = ["BatchMode", "execute_batch"]
