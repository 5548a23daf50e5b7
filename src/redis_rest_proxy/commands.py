"""Turn an HTTP request into Redis commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote

from starlette.requests import ClientDisconnect, Request

from .errors import ErrorCode, RequestShapeError, Result

TOKEN_QUERY_PARAM = "_token"
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

BATCH_ON_SINGLE_ENDPOINT = (
    "Expected a flat JSON array for a single command. For batch commands, please use /pipeline or /multi-exec."
)
INVALID_BATCH = "Expected a JSON array of command arrays"


@dataclass(frozen=True)
class Command:
    name: str
    args: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("command name must not be empty")

    def as_call(self) -> tuple[str, ...]:
        return (self.name, *self.args)


def stringify(value: Any) -> str:
    """Render a JSON scalar the way it was written: 5 -> "5", 1.0 -> "1", 2.5 -> "2.5"."""
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_argument(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def query_arguments(request: Request) -> list[str]:
    """Every query pair except the auth token, flattened as key, value, key, value."""
    args: list[str] = []
    for key, value in request.query_params.multi_items():
        if key == TOKEN_QUERY_PARAM:
            continue
        args.extend((key, value))
    return args


def parse_command_array(body: list[Any], trailing: list[str]) -> Result[Command]:
    if body and isinstance(body[0], list):
        return Result.failure(RequestShapeError(BATCH_ON_SINGLE_ENDPOINT, code=ErrorCode.BATCH_ON_SINGLE_ENDPOINT))
    if not body or not isinstance(body[0], str) or not body[0]:
        return Result.failure(RequestShapeError("The first element must be the command name (a string)."))
    if not all(_is_argument(item) for item in body[1:]):
        return Result.failure(RequestShapeError("Command arguments must be strings or numbers."))
    name, *args = body
    return Result.success(Command(name=name, args=(*map(stringify, args), *trailing)))


def raw_request_path(request: Request) -> str:
    """The request path as sent, percent-escapes intact."""
    raw = request.scope.get("raw_path")
    if raw is None:
        return request.url.path
    return raw.decode("latin-1")


def parse_command_path(path: str, trailing: list[str]) -> Result[Command]:
    """Split a still-encoded path on `/`, then decode each segment so `%2F` stays inside its argument."""
    segments = [unquote(segment) for segment in path.split("/") if segment]
    if not segments:
        return Result.failure(RequestShapeError("No command provided in URL.", code=ErrorCode.MISSING_COMMAND))
    name, *args = segments
    return Result.success(Command(name=name, args=(*args, *trailing)))


async def read_text(request: Request) -> str:
    try:
        body = await request.body()
    except (ClientDisconnect, RuntimeError):
        return ""
    return body.decode("utf-8", errors="replace")


async def build_command(request: Request) -> Result[Command]:
    """
    Build the single command a request describes.

    A flat JSON array body wins; otherwise the command comes from the path
    segments. Query parameters other than `_token` are appended in order.
    """
    text = await read_text(request)
    trailing = query_arguments(request)

    body: Any = None
    if request.method.upper() in BODY_METHODS and text.strip():
        try:
            body = json.loads(text)
        except json.JSONDecodeError:
            return Result.failure(
                RequestShapeError("Unable to parse request body as JSON.", code=ErrorCode.INVALID_JSON)
            )

    if isinstance(body, list):
        return parse_command_array(body, trailing)
    return parse_command_path(raw_request_path(request), trailing)


def parse_batch(payload: Any) -> Result[list[list[Any]]]:
    """Accept only a list of lists of strings/numbers; element emptiness is checked at execution."""
    if not isinstance(payload, list):
        return Result.failure(RequestShapeError(INVALID_BATCH, code=ErrorCode.INVALID_BATCH))
    for entry in payload:
        if not isinstance(entry, list) or not all(_is_argument(item) for item in entry):
            return Result.failure(RequestShapeError(INVALID_BATCH, code=ErrorCode.INVALID_BATCH))
    return Result.success(payload)


async def read_batch(request: Request) -> Result[list[list[Any]]]:
    try:
        payload = json.loads(await read_text(request))
    except json.JSONDecodeError:
        return Result.failure(RequestShapeError(INVALID_BATCH, code=ErrorCode.INVALID_BATCH))
    return parse_batch(payload)


__all__ = [
    "Command",
    "TOKEN_QUERY_PARAM",
    "build_command",
    "parse_batch",
    "parse_command_array",
    "parse_command_path",
    "query_arguments",
    "raw_request_path",
    "read_batch",
    "stringify",
]
