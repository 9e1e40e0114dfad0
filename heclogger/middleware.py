"""
Middleware pipeline applied to a context right before it is sent.

A step is a coroutine function (or plain callable) taking the context. It
returns the context to pass on, or None to pass on the same, possibly
mutated, context. Raising aborts the pipeline.

Example:
    async def add_app_name(context):
        context.message = {"app": "billing", "payload": context.message}
        return context

    logger.use(add_app_name)
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .context import Context
from .errors import ConfigError, MiddlewareError

logger = logging.getLogger(__name__)

MiddlewareStep = Callable[[Context], "Context | None | Awaitable[Context | None]"]


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""

    context: Context
    error: MiddlewareError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MiddlewarePipeline:
    """Ordered chain of transform steps; registration order is execution order."""

    def __init__(self):
        self._steps: list[MiddlewareStep] = []

    def __len__(self) -> int:
        return len(self._steps)

    def register(self, step: MiddlewareStep) -> None:
        """Append a step to the chain."""
        if not callable(step):
            raise ConfigError("Middleware must be callable.", field="middleware")
        self._steps.append(step)

    async def run(self, context: Context) -> PipelineResult:
        """
        Run every step in order, stopping at the first failure.

        Steps are awaited one at a time. On failure the result carries the
        context as last observed, including mutations already applied.
        """
        # Snapshot so steps registered mid-run apply from the next flush
        for index, step in enumerate(tuple(self._steps)):
            try:
                result: Any = step(context)
                if inspect.isawaitable(result):
                    result = await result
            except MiddlewareError as e:
                if e.context is None:
                    e.context = context
                return PipelineResult(context=context, error=e)
            except Exception as e:
                name = getattr(step, "__name__", repr(step))
                logger.debug(f"Middleware step {index} ({name}) aborted: {e}")
                error = MiddlewareError(str(e) or type(e).__name__, context=context)
                error.__cause__ = e
                return PipelineResult(context=context, error=error)

            if result is not None:
                context = result

        return PipelineResult(context=context)
