"""
Reply values produced by the store client.

A reply is one of: None, bool, int, float, str, bytes (the shape the live
client returns for every bulk and status string), an error reply
(`redis.exceptions.ResponseError` or any exception the client hands back in
place of a value), a list of replies, or a str-keyed mapping of replies.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Union

StoreValue = Union[None, bool, int, float, str, bytes, BaseException, List[Any], Dict[str, Any]]


class ValueKind(str, Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"
    ERROR = "error"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def kind_of(value: Any) -> ValueKind:
    """Classify a reply. Raises TypeError for values the store never produces."""
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.DOUBLE
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    if isinstance(value, BaseException):
        return ValueKind.ERROR
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    if isinstance(value, dict):
        return ValueKind.MAPPING
    raise TypeError(f"Unsupported reply type: {type(value).__name__}")


def decode_text(value: bytes | bytearray | memoryview) -> str:
    return bytes(value).decode("utf-8", errors="replace")


def error_message(value: BaseException) -> str:
    message = str(value)
    return message or type(value).__name__


def flatten_mapping(value: dict[Any, Any]) -> list[StoreValue]:
    """`{"a": 1, "b": 2}` -> `["a", 1, "b", 2]`, the shape HGETALL has on the wire."""
    flat: list[Any] = []
    for key, item in value.items():
        flat.extend((key, item))
    return flat


__all__ = ["StoreValue", "ValueKind", "kind_of", "decode_text", "error_message", "flatten_mapping"]
