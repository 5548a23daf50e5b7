"""
Reply formatting.

Headers select one of three renderings of a store reply:
- `Upstash-Response-Format: resp2`: the reply re-encoded as RESP2 text
- `Upstash-Encoding: base64`: every string leaf except "OK" Base64-encoded
- neither: the reply as-is

RESP2 is checked first, so it wins when both headers are sent.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
from typing import Any

from .values import StoreValue, ValueKind, decode_text, error_message, flatten_mapping, kind_of

ENCODING_HEADER = "Upstash-Encoding"
RESPONSE_FORMAT_HEADER = "Upstash-Response-Format"
BASE64 = "base64"
RESP2 = "resp2"

CRLF = b"\r\n"
STATUS_OK = "OK"
STATUS_OK_BYTES = b"OK"


def wants_resp2(headers: Mapping[str, str]) -> bool:
    return (headers.get(RESPONSE_FORMAT_HEADER) or "").strip().lower() == RESP2


def wants_base64(headers: Mapping[str, str]) -> bool:
    return (headers.get(ENCODING_HEADER) or "").strip().lower() == BASE64


def _bulk(data: bytes) -> bytes:
    return b"$" + str(len(data)).encode() + CRLF + data + CRLF


def encode_resp2(value: StoreValue) -> bytes:
    """Encode a reply as RESP2. `"OK"` is the only string sent as a simple status."""
    kind = kind_of(value)
    if kind is ValueKind.NULL:
        return b"$-1\r\n"
    if kind is ValueKind.BYTES:
        if bytes(value) == STATUS_OK_BYTES:
            return b"+OK\r\n"
        return _bulk(bytes(value))
    if kind is ValueKind.ERROR:
        return b"-ERR " + error_message(value).encode("utf-8") + CRLF
    if kind is ValueKind.BOOLEAN:
        return b":1\r\n" if value else b":0\r\n"
    if kind is ValueKind.INTEGER:
        return b":" + str(value).encode() + CRLF
    if kind is ValueKind.DOUBLE:
        return _bulk(repr(value).encode())
    if kind is ValueKind.STRING:
        if value == STATUS_OK:
            return b"+OK\r\n"
        return _bulk(value.encode("utf-8"))
    if kind is ValueKind.MAPPING:
        value = flatten_mapping(value)
    return b"*" + str(len(value)).encode() + CRLF + b"".join(encode_resp2(item) for item in value)


def encode_base64(value: StoreValue) -> Any:
    """Base64-encode every string leaf except "OK"; other scalars pass through."""
    kind = kind_of(value)
    if kind is ValueKind.STRING:
        if value == STATUS_OK:
            return value
        return base64.b64encode(value.encode("utf-8")).decode("ascii")
    if kind is ValueKind.BYTES:
        if bytes(value) == STATUS_OK_BYTES:
            return STATUS_OK
        return base64.b64encode(bytes(value)).decode("ascii")
    if kind is ValueKind.SEQUENCE:
        return [encode_base64(item) for item in value]
    if kind is ValueKind.MAPPING:
        return {key: encode_base64(item) for key, item in value.items()}
    return value


def to_json_value(value: StoreValue) -> Any:
    """Make a reply JSON-serialisable: bytes become text, error replies their message."""
    kind = kind_of(value)
    if kind is ValueKind.BYTES:
        return decode_text(value)
    if kind is ValueKind.ERROR:
        return error_message(value)
    if kind is ValueKind.SEQUENCE:
        return [to_json_value(item) for item in value]
    if kind is ValueKind.MAPPING:
        return {_key_text(key): to_json_value(item) for key, item in value.items()}
    return value


def _key_text(key: Any) -> str:
    if isinstance(key, (bytes, bytearray, memoryview)):
        return decode_text(key)
    return str(key)


def format_reply(reply: StoreValue, headers: Mapping[str, str]) -> Any:
    """Render a store reply for the JSON `result` field."""
    if isinstance(reply, dict):
        reply = flatten_mapping(reply)

    if wants_resp2(headers):
        return encode_resp2(reply).decode("utf-8", errors="replace")
    if wants_base64(headers):
        reply = encode_base64(reply)
    return to_json_value(reply)


__all__ = [
    "ENCODING_HEADER",
    "RESPONSE_FORMAT_HEADER",
    "encode_base64",
    "encode_resp2",
    "format_reply",
    "to_json_value",
    "wants_base64",
    "wants_resp2",
]
