"""
Redis REST proxy.

Relays HTTP requests to a Redis server (single instance or Sentinel-managed)
and answers with the reply as JSON. Single commands come from the URL path or
a JSON array body; `/pipeline` and `/multi-exec` take a batch of commands.

The ASGI application lives in `redis_rest_proxy.app`; importing this package
does not build it.
"""

__version__ = "0.1.0"

from .batch import BatchMode, execute_batch
from .commands import Command, build_command, parse_batch
from .errors import (
    AuthenticationError,
    BatchExecutionError,
    ConfigurationError,
    ErrorCode,
    ProxyError,
    RequestShapeError,
    Result,
    StoreError,
)
from .formatting import encode_base64, encode_resp2, format_reply
from .settings import Settings, StoreConfig, get_settings
from .store import StoreClient, close_store, get_store, set_store

__all__ = [
    "__version__",
    "BatchMode",
    "execute_batch",
    "Command",
    "build_command",
    "parse_batch",
    "AuthenticationError",
    "BatchExecutionError",
    "ConfigurationError",
    "ErrorCode",
    "ProxyError",
    "RequestShapeError",
    "Result",
    "StoreError",
    "encode_base64",
    "encode_resp2",
    "format_reply",
    "Settings",
    "StoreConfig",
    "get_settings",
    "StoreClient",
    "close_store",
    "get_store",
    "set_store",
]
