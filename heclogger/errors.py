"""
Exception types raised and reported by heclogger.

Validation errors (ConfigError, ContextError) are raised synchronously to the
caller. Delivery errors (MiddlewareError, TransportError, ServiceError) are
reported asynchronously through the logger's error sink.
"""

from typing import Any


class HecLoggerError(Exception):
    """Base class for all heclogger errors."""


class ConfigError(HecLoggerError, ValueError):
    """Malformed settings."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ContextError(HecLoggerError, ValueError):
    """Malformed event input."""


class MiddlewareError(HecLoggerError):
    """A middleware step aborted the pipeline."""

    def __init__(self, message: str, context: Any = None):
        super().__init__(message)
        self.context = context


class TransportError(HecLoggerError):
    """The HTTP exchange itself failed (connect, read, timeout)."""


class ServiceError(HecLoggerError):
    """The collector answered with a non-zero status code."""

    def __init__(self, text: str, code: Any = None):
        super().__init__(text)
        self.text = text
        self.code = code

    def __str__(self) -> str:
        return f"{self.text} (code {self.code})"
