"""
Delivery engine: POST, classify the outcome, retry transport failures.

Outcomes:
    transport error: the POST itself failed; retried with backoff while
        attempts remain (at most ``max_retries + 1`` attempts in total)
    service error: the collector answered with a non-zero ``code``, or with a
        non-2xx status and no ``code``; never retried
    success: the collector answered with code 0, or a 2xx status and no code

Transport and service errors are reported to the error sink. Only a
transport error is ever passed to the completion callback.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from .context import Context
from .errors import ServiceError, TransportError
from .resilience import BackoffPolicy, default_backoff
from .transport import Transport

logger = logging.getLogger(__name__)

ErrorSink = Callable[[Exception, Any], Any]
Callback = Callable[[Exception | None, Any, Any], Any]

# Set while the current task is inside a POST to the collector
_delivering: ContextVar[bool] = ContextVar("heclogger_delivering", default=False)


def in_delivery() -> bool:
    """True while the current task is POSTing to the collector."""
    return _delivering.get()


@dataclass
class DeliveryResult:
    """What the completion callback receives, as an object."""

    error: Exception | None = None
    response: Any = None
    body: Any = None
    attempts: int = 0
    service_error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.service_error is None


def classify_response(response: Any, body: Any) -> ServiceError | None:
    """
    Return a ServiceError if the collector rejected the request.

    A ``code`` in the body decides. Without one, any status outside 2xx
    is a rejection carrying the status as its code.
    """
    if isinstance(body, dict) and body.get("code") is not None:
        if str(body["code"]) == "0":
            return None
        return ServiceError(str(body.get("text", "")), code=body["code"])

    status = getattr(response, "status_code", None)
    if status is None or 200 <= status < 300:
        return None
    if isinstance(body, dict):
        text = str(body.get("text", ""))
    elif isinstance(body, str):
        text = body[:200]
    else:
        text = ""
    return ServiceError(text or f"HTTP {status}", code=status)


async def invoke(func: Callable[..., Any] | None, *args: Any) -> None:
    """Call a user callback (plain or async) without letting it break delivery."""
    if func is None:
        return
    try:
        result = func(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(f"Callback {getattr(func, '__name__', func)!r} raised")


class DeliveryEngine:
    """
    Sends a prepared context and drives the retry loop.

    Args:
        transport: Performs the actual POST
        backoff: ``policy(attempt) -> seconds`` between retries
        sleep: Coroutine used to wait between retries
    """

    def __init__(
        self,
        transport: Transport,
        backoff: BackoffPolicy = default_backoff,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.transport = transport
        self.backoff = backoff
        self.sleep = sleep

    async def deliver(
        self,
        context: Context,
        error_sink: ErrorSink,
        callback: Callback | None = None,
    ) -> DeliveryResult:
        """Deliver ``context`` and report the outcome."""
        max_retries = context.config.max_retries
        attempts = 0
        transport_error: TransportError | None = None
        service_error: ServiceError | None = None
        response = None
        body = None

        while attempts <= max_retries:
            attempts += 1
            token = _delivering.set(True)
            try:
                response, body = await self.transport.post(context.request_options)
                transport_error = None
            except TransportError as e:
                transport_error = e
                response = None
                body = None
            except Exception as e:
                # Any other failure to POST is retried and reported the same way
                transport_error = TransportError(f"{type(e).__name__}: {e}")
                transport_error.__cause__ = e
                response = None
                body = None
            finally:
                _delivering.reset(token)

            if transport_error is None:
                service_error = classify_response(response, body)
                break

            if attempts > max_retries:
                break

            delay = self.backoff(attempts)
            logger.warning(
                f"Delivery attempt {attempts}/{max_retries + 1} failed: {transport_error}; "
                f"retrying in {delay:.3f}s"
            )
            await self.sleep(delay)

        if transport_error is not None or service_error is not None:
            await invoke(error_sink, transport_error or service_error, context)
        else:
            logger.debug(f"Delivered to {context.request_options.url} in {attempts} attempt(s)")

        await invoke(callback, transport_error, response, body)

        return DeliveryResult(
            error=transport_error,
            response=response,
            body=body,
            attempts=attempts,
            service_error=service_error,
        )
