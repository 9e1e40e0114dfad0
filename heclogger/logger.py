"""
HecLogger - batched event shipping to an HTTP Event Collector.

Usage:
    from heclogger import HecLogger

    # Option 1: Send each event as it arrives (default)
    logger = HecLogger({"token": "your-token", "url": "https://hec.example.com:8088"})
    await logger.send({"message": {"temperature": "70F"}, "severity": "info"})

    # Option 2: Batch on a timer
    logger = HecLogger({"token": "your-token", "batchInterval": 1000})
    logger.send({"message": "queued until the next tick"})

    # Option 3: Batch manually
    logger = HecLogger({"token": "your-token", "autoFlush": False})
    logger.send({"message": "first"})
    logger.send({"message": "second"})
    result = await logger.flush()

    # Add a transform before anything is sent
    def tag(context):
        context.message = {"app": "billing", "data": context.message}

    logger.use(tag)

Every method that queues or flushes must be called from a running event loop.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from typing import Any

from .batch_queue import BatchQueue
from .config import Level, Settings, resolve_settings, settings_from_env
from .context import BATCH_CONTENT_TYPE, Context, Normalizer, make_body, serialize
from .delivery import Callback, DeliveryEngine, DeliveryResult, ErrorSink, invoke
from .errors import HecLoggerError
from .middleware import MiddlewarePipeline, MiddlewareStep
from .resilience import BackoffPolicy, default_backoff
from .timer import FlushTimer
from .transport import HttpxTransport, Transport

logger = logging.getLogger("heclogger")


def default_error_sink(error: Exception, context: Any) -> None:
    """Log a delivery failure. The token is never logged."""
    if isinstance(context, Context):
        logger.error(
            f"HEC delivery failed: {error!r} (url={context.config.url}, "
            f"severity={context.severity}, message={context.message!r:.200})"
        )
    else:
        logger.error(f"HEC delivery failed: {error!r}")


class HecLogger:
    """
    Queues events, runs middleware, and delivers them to the collector.

    Flushing is triggered three ways: explicitly with ``flush()``, by
    ``send()`` when the queued size exceeds ``max_batch_size`` (only while
    ``auto_flush`` is on and no timer runs), and by the batch timer every
    ``batch_interval`` milliseconds.

    Attributes:
        error: Error sink ``(error, context)``, replaceable. Defaults to
            logging the failure.
    """

    levels = Level

    def __init__(
        self,
        config: Settings | Mapping[str, Any],
        transport: Transport | None = None,
        *,
        backoff: BackoffPolicy = default_backoff,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the logger.

        Args:
            config: Settings or a mapping of them; ``token`` is required
            transport: POST implementation (defaults to an httpx transport)
            backoff: Delay policy between retries
            sleep: Coroutine used to wait between retries

        Raises:
            ConfigError: If ``config`` is malformed
        """
        self._config: Settings | None = None
        self._timer = FlushTimer(self._on_timer_tick)
        self._queue = BatchQueue()
        self._pipeline = MiddlewarePipeline()
        self._normalizer = Normalizer(self._initialize_config, self._validate_config)
        self._owns_transport = transport is None
        self._transport = transport or HttpxTransport()
        self._delivery = DeliveryEngine(self._transport, backoff=backoff, sleep=sleep)
        self._pending: set[asyncio.Task] = set()
        self.error: ErrorSink = default_error_sink

        self.configure(config)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> Settings:
        """Current instance-level settings."""
        return self._config

    def configure(self, config: Settings | Mapping[str, Any]) -> Settings:
        """Merge ``config`` into the instance settings and return the result."""
        self._config = self._initialize_config(config)
        return self._config

    def _initialize_config(self, candidate: Settings | Mapping[str, Any] | None) -> Settings:
        settings = resolve_settings(self._config if candidate is None else candidate, self._config)

        # Resolution is the only place batching policy can change
        self._timer.reconcile(settings)
        if (
            self._config is not None
            and self._timer.running
            and self._config.batch_interval != self._timer.interval
        ):
            self._config = self._config.model_copy(update={"batch_interval": self._timer.interval})
        return settings

    def _validate_config(self, candidate: Settings | Mapping[str, Any] | None) -> Settings:
        # Checked again at flush time; only send() and configure() steer the timer
        return resolve_settings(self._config if candidate is None else candidate, self._config)

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def use(self, middleware: MiddlewareStep) -> None:
        """
        Add a middleware step to run before events are sent.

        Steps run in the order they are added.

        Raises:
            ConfigError: If ``middleware`` is not callable
        """
        self._pipeline.register(middleware)

    def calculate_batch_size(self) -> int:
        """Bytes currently queued, as they would be sent in one request."""
        return self._queue.total_size()

    def send(
        self, context: Context | Mapping[str, Any], callback: Callback | None = None
    ) -> "asyncio.Task[DeliveryResult | None] | None":
        """
        Queue an event, flushing right away when the batching policy says so.

        Args:
            context: A mapping with ``message`` and optional ``severity``,
                ``metadata`` and ``config``
            callback: ``callback(error, response, body)``, called when the
                flush this send triggers completes

        Returns:
            The flush task if one was started, otherwise None

        Raises:
            ContextError: If ``context`` is malformed
            ConfigError: If its configuration is malformed
        """
        context = self._normalizer.normalize(context)
        self._queue.enqueue(context)

        batch_over_size = self._queue.total_size() > context.config.max_batch_size

        if context.config.auto_flush and not self._timer.running and batch_over_size:
            return self.flush(callback)
        return None

    def flush(self, callback: Callback | None = None) -> "asyncio.Task[DeliveryResult | None]":
        """
        Send queued events.

        The queue snapshot is taken before this method returns; events sent
        afterwards go to the next flush. When batching applies (``auto_flush``
        off, the batch over ``max_batch_size``, or a timer running) every
        queued event goes out in one request. Otherwise only the most recently
        queued event is sent and older ones stay queued.

        Args:
            callback: ``callback(error, response, body)``; ``error`` is only
                ever a TransportError

        Returns:
            Task resolving to the DeliveryResult, or None if nothing was queued
        """
        return self._flush(callback)

    async def close(self) -> None:
        """Stop the timer, send everything still queued, and release the transport."""
        await self._timer.aclose()
        if self._queue:
            self._flush(None, force_batch=True)
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> "HecLogger":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_stats(self) -> dict:
        """Get queue and timer state."""
        return {
            "queued": len(self._queue),
            "queued_bytes": self._queue.total_size(),
            "timer_running": self._timer.running,
            "timer_interval": self._timer.interval,
            "middleware": len(self._pipeline),
            "in_flight": len(self._pending),
        }

    # ------------------------------------------------------------------
    # Flush internals
    # ------------------------------------------------------------------

    def _flush(
        self, callback: Callback | None, force_batch: bool = False
    ) -> "asyncio.Task[DeliveryResult | None]":
        loop = asyncio.get_running_loop()

        if not self._queue:
            return self._schedule(loop, _nothing())

        config = self._config
        batch_over_size = (
            config.max_batch_size > 0 and self._queue.total_size() > config.max_batch_size
        )
        is_batched = force_batch or not config.auto_flush or batch_over_size or self._timer.running

        if is_batched:
            batch = self._queue.drain_all()
            seed: Context | dict = {
                "message": "".join(serialize(make_body(queued)) for queued in batch.contexts)
            }
            logger.debug(f"Flushing batch of {len(batch)} events ({batch.total_size} bytes)")
        else:
            # Only the newest event; older ones wait for a later flush
            seed = self._queue.take_newest()
            logger.debug("Flushing single event")

        context = self._normalizer.normalize(seed, revalidate=True)
        return self._schedule(loop, self._process(context, is_batched, callback))

    def _schedule(self, loop: asyncio.AbstractEventLoop, coro: Coroutine) -> asyncio.Task:
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _on_timer_tick(self) -> None:
        if self._queue:
            self._flush(None)

    async def _report_error(self, error: Exception, context: Any) -> None:
        await invoke(self.error, error, context)

    async def _process(
        self, context: Context, is_batched: bool, callback: Callback | None
    ) -> DeliveryResult:
        result = await self._pipeline.run(context)
        context = result.context
        if not result.ok:
            await self._report_error(result.error, context)
            return DeliveryResult(error=result.error)

        # Middleware may have changed anything; validate again before sending
        try:
            context = self._normalizer.normalize(context, revalidate=True)
        except HecLoggerError as e:
            await self._report_error(e, context)
            return DeliveryResult(error=e)

        options = context.request_options
        if is_batched and isinstance(context.message, str):
            options.headers["Content-Type"] = BATCH_CONTENT_TYPE
            options.json = False
            options.body = context.message
        else:
            options.body = make_body(context)

        return await self._delivery.deliver(context, self._report_error, callback)


async def _nothing() -> None:
    return None


def from_env(**overrides: Any) -> HecLogger:
    """
    Create a HecLogger from environment variables.

    See ``heclogger.config.settings_from_env`` for the variables read.
    Keyword arguments override the environment.
    """
    config = settings_from_env()
    config.update(overrides)
    return HecLogger(config)
