"""
Settings for heclogger.

Settings are resolved per field: a value supplied by the caller wins over the
instance-level value, which wins over the built-in default. The resolved
snapshot is immutable; a logger replaces its snapshot rather than mutating it.

Usage:
    from heclogger.config import resolve_settings

    base = resolve_settings({"token": "abc", "batchInterval": 1000})
    per_call = resolve_settings({"maxRetries": 3}, base)
"""

import logging
import os
from collections.abc import Mapping
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_NAME = "hec-logger/1.0.0"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8088
DEFAULT_PROTOCOL = "https"
DEFAULT_PATH = "/services/collector/event/1.0"


class Level(str, Enum):
    """Common severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Settings(BaseModel):
    """Resolved, validated logger settings."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    token: StrictStr = Field(min_length=1)
    name: str = DEFAULT_NAME
    host: str = DEFAULT_HOST
    port: int = Field(DEFAULT_PORT, ge=1000, le=65535)
    protocol: str = DEFAULT_PROTOCOL
    path: str = DEFAULT_PATH
    level: str = Level.INFO.value
    auto_flush: bool = True
    max_retries: int = Field(0, ge=0)  # Retries after the first attempt
    batch_interval: int = Field(0, ge=0)  # Milliseconds, 0 disables the timer
    max_batch_size: int = Field(0, ge=0)  # Bytes, 0 flushes on every event
    strict_ssl: bool = False
    timeout: float = Field(10.0, gt=0)  # Seconds per HTTP request

    @field_validator("level", mode="before")
    @classmethod
    def _level_value(cls, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        return value

    @property
    def url(self) -> str:
        """Full collector URL."""
        return f"{self.protocol}://{self.host}:{self.port}{self.path}"

    @property
    def wants_timer(self) -> bool:
        """True when these settings call for periodic flushing."""
        return self.auto_flush and self.batch_interval > 0


# Maps both field names and their camelCase aliases to the field name
_FIELD_BY_KEY: dict[str, str] = {}
for _name, _info in Settings.model_fields.items():
    _FIELD_BY_KEY[_name] = _name
    if _info.alias:
        _FIELD_BY_KEY[_info.alias] = _name


def parse_url(url: str) -> dict[str, Any]:
    """
    Split a collector URL into protocol, host, port and path.

    A path of "/" is ignored. A value without a hostname is taken to be the
    host itself (e.g. "splunk.local").
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise ConfigError(f"Invalid url: {url!r} ({e})", field="url") from e

    result: dict[str, Any] = {}
    path_is_not_slash = bool(parts.path) and parts.path != "/"

    if parts.scheme:
        result["protocol"] = parts.scheme
    if port:
        result["port"] = port
    if parts.hostname:
        result["host"] = parts.hostname
        if path_is_not_slash:
            result["path"] = parts.path
    elif path_is_not_slash:
        result["host"] = parts.path
    return result


def _candidate_fields(candidate: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize a candidate mapping to field names, expanding ``url``."""
    fields: dict[str, Any] = {}
    for key, value in candidate.items():
        name = _FIELD_BY_KEY.get(key)
        if name is not None:
            fields[name] = value

    url = candidate.get("url")
    if url:
        # Explicit fields in the same candidate take precedence over the URL
        for name, value in parse_url(url).items():
            if fields.get(name) is None:
                fields[name] = value
    return fields


def resolve_settings(
    candidate: "Settings | Mapping[str, Any] | None",
    current: Settings | None = None,
) -> Settings:
    """
    Resolve a candidate configuration against the current instance settings.

    Args:
        candidate: Per-call configuration, a mapping (snake_case or camelCase
            keys, optional ``url``) or a full Settings snapshot
        current: Instance-level settings, if any

    Returns:
        A validated Settings snapshot

    Raises:
        ConfigError: If the merged configuration is invalid; ``field`` names
            the offending setting
    """
    if candidate is None:
        raise ConfigError("Config is required.")
    if isinstance(candidate, Settings):
        overrides = candidate.model_dump()
    elif isinstance(candidate, Mapping):
        overrides = _candidate_fields(candidate)
    else:
        raise ConfigError(f"Config must be a mapping, found: {type(candidate).__name__}")

    merged = current.model_dump() if current is not None else {}
    merged.update({name: value for name, value in overrides.items() if value is not None})

    try:
        return Settings(**merged)
    except ValidationError as e:
        error = e.errors()[0]
        loc = error["loc"][0] if error["loc"] else None
        field = _FIELD_BY_KEY.get(str(loc), loc) if loc is not None else None
        raise ConfigError(
            f"Invalid {field}: {error['msg']}, found: {merged.get(field)!r}",
            field=field,
        ) from e


def settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Read logger configuration from environment variables.

    Environment variables:
        HEC_TOKEN: Collector token (required)
        HEC_URL: Collector URL (optional)
        HEC_BATCH_INTERVAL: Flush interval in milliseconds (optional)
        HEC_MAX_BATCH_SIZE: Flush threshold in bytes (optional)
        HEC_MAX_RETRIES: Retries after a transport failure (optional)
    """
    environ = os.environ if environ is None else environ

    token = environ.get("HEC_TOKEN")
    if not token:
        raise ConfigError("HEC_TOKEN environment variable required", field="token")

    config: dict[str, Any] = {"token": token}
    for key, name in (
        ("HEC_URL", "url"),
        ("HEC_BATCH_INTERVAL", "batch_interval"),
        ("HEC_MAX_BATCH_SIZE", "max_batch_size"),
        ("HEC_MAX_RETRIES", "max_retries"),
    ):
        if environ.get(key):
            config[name] = environ[key]
    return config
