"""
Python logging integration for heclogger.

Usage:
    from heclogger import setup_logging
    import logging

    hec = setup_logging({"token": "your-token", "batchInterval": 1000})

    logger = logging.getLogger(__name__)
    logger.info("Payment processed", extra={"user_id": "u123"})

Records are queued through ``HecLogger.send``, so the handler has to be used
from code running inside the event loop.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from .config import Level, Settings
from .delivery import in_delivery
from .logger import HecLogger

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
        "asctime",
    )
)

_SEVERITY_BY_LEVEL = {
    logging.DEBUG: Level.DEBUG.value,
    logging.INFO: Level.INFO.value,
    logging.WARNING: Level.WARN.value,
    logging.ERROR: Level.ERROR.value,
    logging.CRITICAL: Level.ERROR.value,
}


_TRANSPORT_LOGGERS = ("heclogger", "httpx", "httpcore")


def _is_transport_logger(name: str) -> bool:
    return any(name == prefix or name.startswith(f"{prefix}.") for prefix in _TRANSPORT_LOGGERS)


def severity_for(levelno: int) -> str:
    """Map a logging level number to a collector severity."""
    for threshold in (logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO):
        if levelno >= threshold:
            return _SEVERITY_BY_LEVEL[threshold]
    return Level.DEBUG.value


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Collect JSON-serializable ``extra`` attributes from a record."""
    attributes = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED_ATTRS:
            continue
        if isinstance(value, str | int | float | bool | type(None)):
            attributes[key] = value
        elif isinstance(value, list | dict):
            try:
                json.dumps(value)  # Test serializability
                attributes[key] = value
            except (TypeError, ValueError):
                pass
    return attributes


class HecHandler(logging.Handler):
    """
    Logging handler that forwards records to a HecLogger.

    The event message is the formatted record, plus any ``extra`` fields
    under ``attributes``.
    """

    def __init__(self, hec: HecLogger, min_level: int = logging.INFO):
        super().__init__(level=min_level)
        self.hec = hec

    def emit(self, record: logging.LogRecord):
        # Records raised while shipping would loop back through the handler
        if in_delivery() or _is_transport_logger(record.name):
            return
        try:
            message: dict[str, Any] = {"text": self.format(record), "logger": record.name}
            attributes = record_extras(record)
            if attributes:
                message["attributes"] = attributes

            self.hec.send(
                {
                    "message": message,
                    "severity": severity_for(record.levelno),
                    "metadata": {"time": record.created, "source": record.name},
                }
            )
        except Exception:
            self.handleError(record)


def setup_logging(
    config: Settings | Mapping[str, Any],
    min_level: int = logging.INFO,
    also_console: bool = True,
    **logger_kwargs,
) -> HecLogger:
    """
    Ship records from the root logger to the collector.

    Args:
        config: HecLogger settings
        min_level: Minimum log level to ship
        also_console: Also log to console (default: True)
        **logger_kwargs: Additional args passed to HecLogger

    Returns:
        HecLogger instance (for stats/manual flush)
    """
    hec = HecLogger(config, **logger_kwargs)

    handler = HecHandler(hec, min_level=min_level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    if also_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(console_handler)

    if root_logger.level == logging.NOTSET:
        root_logger.setLevel(min_level)

    return hec
