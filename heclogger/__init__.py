"""
heclogger - Batched, resilient event shipping to an HTTP Event Collector.

This package provides:
- HecLogger: queueing, middleware, batching and retrying delivery
- HecHandler / setup_logging: forward standard library logging records
- resilience: backoff policies used between retries

Usage:
    from heclogger import HecLogger

    async with HecLogger({"token": "your-token", "batchInterval": 1000}) as hec:
        hec.send({"message": "Service started"})
"""

from .batch_queue import Batch, BatchQueue
from .config import Level, Settings, parse_url, resolve_settings, settings_from_env
from .context import Context, Normalizer, RequestOptions, format_time, make_body
from .delivery import DeliveryEngine, DeliveryResult
from .errors import (
    ConfigError,
    ContextError,
    HecLoggerError,
    MiddlewareError,
    ServiceError,
    TransportError,
)
from .handler import HecHandler, setup_logging
from .logger import HecLogger, default_error_sink, from_env
from .middleware import MiddlewarePipeline
from .resilience import BackoffConfig, ExponentialBackoff, no_backoff
from .timer import FlushTimer
from .transport import HttpxTransport

__all__ = [
    # Logger
    "HecLogger",
    "HecHandler",
    "setup_logging",
    "from_env",
    "default_error_sink",
    # Settings
    "Settings",
    "Level",
    "resolve_settings",
    "settings_from_env",
    "parse_url",
    # Events
    "Context",
    "Normalizer",
    "RequestOptions",
    "format_time",
    "make_body",
    # Engine
    "Batch",
    "BatchQueue",
    "FlushTimer",
    "MiddlewarePipeline",
    "DeliveryEngine",
    "DeliveryResult",
    "HttpxTransport",
    # Resilience
    "BackoffConfig",
    "ExponentialBackoff",
    "no_backoff",
    # Errors
    "HecLoggerError",
    "ConfigError",
    "ContextError",
    "MiddlewareError",
    "TransportError",
    "ServiceError",
]

__version__ = "1.0.0"
