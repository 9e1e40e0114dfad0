"""
Event envelopes and the normalizer that builds them.

A Context carries one event, the settings snapshot that was active when it
was created, and the HTTP request options used to deliver it. Normalization
is idempotent: it is applied when an event is sent and again right before
transmission, after middleware has had a chance to mutate the context.
"""

import json
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .config import Settings
from .errors import ContextError

METADATA_KEYS = ("time", "host", "source", "sourcetype", "index")

JSON_CONTENT_TYPE = "application/json"
BATCH_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class RequestOptions:
    """Options for a single HTTP POST to the collector."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    json: bool = True
    strict_ssl: bool = False
    timeout: float = 10.0


@dataclass
class Context:
    """The unit of work: one event plus how to deliver it."""

    message: Any
    config: Settings
    request_options: RequestOptions
    severity: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def format_time(value: Any) -> str | None:
    """
    Format an event time as epoch seconds with millisecond precision.

    Accepts datetimes, epoch seconds, or epoch milliseconds (anything above
    1e11 is read as milliseconds). Returns None for empty values.
    """
    if isinstance(value, datetime):
        seconds = value.timestamp()
    elif value is None or value == "":
        return None
    else:
        try:
            seconds = float(value)
        except (TypeError, ValueError) as e:
            raise ContextError(f"Event time must be numeric, found: {value!r}") from e
        if seconds > 1e11:
            seconds /= 1000
    return f"{seconds:.3f}"


def filter_metadata(metadata: Mapping[str, Any] | None) -> dict[str, Any]:
    """Keep only the recognized metadata keys, in canonical order."""
    if not metadata:
        return {}
    return {key: metadata[key] for key in METADATA_KEYS if key in metadata}


def make_body(context: Context) -> dict[str, Any]:
    """Build the collector's JSON envelope for a single event."""
    body = filter_metadata(context.metadata)
    body["time"] = format_time(body.get("time") or time.time())
    body["event"] = {
        "message": context.message,
        "severity": context.severity or context.config.level,
    }
    return body


def serialize(body: Any) -> str:
    """Compact JSON, as sent on the wire."""
    return json.dumps(body, separators=(",", ":"), default=str)


def body_size(context: Context) -> int:
    """Size in bytes of a context's serialized envelope."""
    return len(serialize(make_body(context)).encode("utf-8"))


class Normalizer:
    """
    Validates raw submissions and canonicalizes them into Contexts.

    Args:
        resolve: Callable turning a candidate config (or None for the instance
            default) into a Settings snapshot
        validate: Like ``resolve`` but free of side effects, used when a
            context already normalized is checked again (defaults to ``resolve``)
    """

    def __init__(
        self,
        resolve: Callable[[Any], Settings],
        validate: Callable[[Any], Settings] | None = None,
    ):
        self._resolve = resolve
        self._validate = validate or resolve

    def request_options(
        self, config: Settings, options: RequestOptions | None = None
    ) -> RequestOptions:
        """Build request options for ``config``, keeping any existing headers."""
        headers = dict(options.headers) if options is not None else {}
        use_json = options.json if options is not None else True
        if use_json:
            headers.setdefault("Content-Type", JSON_CONTENT_TYPE)
        headers["Authorization"] = f"Splunk {config.token}"
        return RequestOptions(
            url=config.url,
            headers=headers,
            body=options.body if options is not None else None,
            json=use_json,
            strict_ssl=config.strict_ssl or (options.strict_ssl if options is not None else False),
            timeout=config.timeout,
        )

    def normalize(
        self, seed: "Context | Mapping[str, Any] | None", *, revalidate: bool = False
    ) -> Context:
        """
        Turn a seed into a fully normalized Context.

        Args:
            seed: A mapping with ``message`` and optional ``severity``,
                ``metadata`` and ``config``, or an existing Context
            revalidate: Resolve the config with the side-effect-free
                validator instead of the resolver

        Raises:
            ContextError: If the seed is missing, not a mapping, or has no message
            ConfigError: If its configuration does not resolve
        """
        if isinstance(seed, Context):
            candidate = seed.config
            message = seed.message
            severity = seed.severity
            metadata = seed.metadata
            options = seed.request_options
        else:
            if not seed:
                raise ContextError("Context argument is required.")
            if not isinstance(seed, Mapping):
                raise ContextError("Context argument must be a mapping.")
            if "message" not in seed:
                raise ContextError("Context argument must have the message property set.")
            candidate = seed.get("config")
            message = seed["message"]
            severity = seed.get("severity")
            metadata = seed.get("metadata")
            options = seed.get("request_options")

        config = (self._validate if revalidate else self._resolve)(candidate)

        if message is None:
            raise ContextError("Message argument is required.")

        return Context(
            message=message,
            config=config,
            request_options=self.request_options(config, options),
            severity=severity or config.level,
            metadata=filter_metadata(metadata),
        )
