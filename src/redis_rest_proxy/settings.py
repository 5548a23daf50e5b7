from __future__ import annotations

from dataclasses import dataclass, field
from os import getenv

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError

DEFAULT_AUTH_TOKEN = "MY_SUPER_SECRET_TOKEN"
DEFAULT_SERVER_PORT = 3000
DEFAULT_REDIS_PORT = 6379
DEFAULT_MASTER_NAME = "mymaster"


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


def _env_str(name: str) -> str | None:
    raw = getenv(name)
    if raw is None or raw == "":
        return None
    return raw


def _env_int(name: str, default: int) -> int:
    raw = getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _db_index(raw: str | None) -> int:
    # An unparseable index silently falls back to database 0.
    try:
        return int(str(raw or "0").strip())
    except ValueError:
        return 0


@dataclass(frozen=True)
class SentinelEndpoint:
    host: str
    port: int

    def as_tuple(self) -> tuple[str, int]:
        return (self.host, self.port)


def parse_sentinels(raw: str) -> tuple[SentinelEndpoint, ...]:
    """Parse a comma-separated `host:port` list, failing on the first malformed entry."""
    endpoints: list[SentinelEndpoint] = []
    for entry in raw.split(","):
        parts = entry.split(":")
        host = parts[0].strip() if parts else ""
        port_text = parts[1].strip() if len(parts) == 2 else ""
        if len(parts) != 2 or not host or not port_text.isdigit():
            raise ConfigurationError(
                f"Invalid sentinel configuration: {entry}. Expected format: host:port",
                entry=entry,
            )
        endpoints.append(SentinelEndpoint(host=host, port=int(port_text)))
    return tuple(endpoints)


@dataclass(frozen=True)
class StoreConfig:
    """Connection settings for the backing Redis store."""

    host: str = "localhost"
    port: int = DEFAULT_REDIS_PORT
    db: int = 0
    password: str | None = None

    # Sentinel topology; empty means a direct connection
    sentinels: tuple[SentinelEndpoint, ...] = ()
    master_name: str = DEFAULT_MASTER_NAME
    master_password: str | None = None
    sentinel_password: str | None = None

    auto_pipelining: bool = False

    @property
    def sentinel_mode(self) -> bool:
        return bool(self.sentinels)

    @classmethod
    def from_env(cls) -> StoreConfig:
        raw_sentinels = _env_str("REDIS_SENTINELS")
        auto_pipelining = getenv("REDIS_ENABLE_AUTO_PIPELINING") == "true"
        db = _db_index(getenv("REDIS_DB"))
        if raw_sentinels:
            return cls(
                db=db,
                sentinels=parse_sentinels(raw_sentinels),
                master_name=_env_str("REDIS_MASTER_NAME") or DEFAULT_MASTER_NAME,
                master_password=_env_str("REDIS_MASTER_PASSWORD"),
                sentinel_password=_env_str("REDIS_SENTINEL_PASSWORD"),
                auto_pipelining=auto_pipelining,
            )
        return cls(
            host=_env_str("REDIS_HOST") or "localhost",
            port=_env_int("REDIS_PORT", DEFAULT_REDIS_PORT),
            db=db,
            password=_env_str("REDIS_PASSWORD"),
            auto_pipelining=auto_pipelining,
        )


@dataclass(frozen=True)
class Settings:
    server_host: str = "0.0.0.0"
    server_port: int = DEFAULT_SERVER_PORT
    auth_token: str = DEFAULT_AUTH_TOKEN

    log_level: str = "INFO"
    log_format: str = "text"

    store: StoreConfig = field(default_factory=StoreConfig)

    def __post_init__(self) -> None:
        if self.server_port < 1 or self.server_port > 65535:
            raise ConfigurationError("SERVER_PORT must be between 1 and 65535")
        if not self.auth_token:
            raise ConfigurationError("AUTH_TOKEN must not be empty")
        if self.log_format not in ("text", "json"):
            raise ConfigurationError(f"Invalid log format: {self.log_format}. Must be one of ('text', 'json')")

    @property
    def uses_default_token(self) -> bool:
        return self.auth_token == DEFAULT_AUTH_TOKEN

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            server_host=getenv("SERVER_HOST", "0.0.0.0").strip() or "0.0.0.0",
            server_port=_env_int("SERVER_PORT", DEFAULT_SERVER_PORT),
            auth_token=getenv("AUTH_TOKEN") or DEFAULT_AUTH_TOKEN,
            log_level=getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_format=getenv("LOG_FORMAT", "text").strip().lower() or "text",
            store=StoreConfig.from_env(),
        )


def get_settings() -> Settings:
    return Settings.from_env()


__all__ = [
    "DEFAULT_AUTH_TOKEN",
    "SentinelEndpoint",
    "Settings",
    "StoreConfig",
    "get_settings",
    "load_env",
    "parse_sentinels",
]
