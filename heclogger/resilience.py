"""
Retry backoff policies for heclogger.

A backoff policy is any callable ``policy(attempt) -> seconds`` that is
monotonically non-decreasing in ``attempt``. The delivery engine calls it
with the number of attempts already made (1 for the first retry).

Usage:
    from heclogger.resilience import BackoffConfig, ExponentialBackoff

    backoff = ExponentialBackoff(BackoffConfig(initial_delay=0.05))
    backoff(1)  # 0.1
    backoff(2)  # 0.2
"""

import random
from collections.abc import Callable
from dataclasses import dataclass

BackoffPolicy = Callable[[int], float]


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for exponential backoff."""

    initial_delay: float = 0.01  # Base delay in seconds (10ms)
    max_delay: float = 120.0  # Maximum delay (2 minutes)
    multiplier: float = 2.0  # Exponential multiplier
    jitter: float = 0.0  # Random extra fraction of the step (0-1)


class ExponentialBackoff:
    """
    Exponential backoff with optional jitter.

    The delay for attempt ``n`` is ``initial_delay * multiplier ** n``,
    capped at ``max_delay``. Jitter only ever adds up to ``jitter`` times
    the growth to the next step, so delays never decrease from one attempt
    to the next.
    """

    def __init__(self, config: BackoffConfig | None = None):
        self.config = config or BackoffConfig()
        if self.config.multiplier < 1:
            raise ValueError(f"Backoff multiplier must be >= 1, found: {self.config.multiplier}")
        if not 0 <= self.config.jitter <= 1:
            raise ValueError(f"Backoff jitter must be between 0 and 1, found: {self.config.jitter}")

    def delay_for(self, attempt: int) -> float:
        """Calculate the delay before retry number ``attempt``."""
        attempt = max(0, attempt)
        base_delay = self.config.initial_delay * (self.config.multiplier**attempt)
        delay = min(base_delay, self.config.max_delay)

        if self.config.jitter > 0 and delay < self.config.max_delay:
            step = base_delay * (self.config.multiplier - 1)
            delay = min(delay + random.uniform(0, step * self.config.jitter), self.config.max_delay)

        return max(0.0, delay)

    def __call__(self, attempt: int) -> float:
        return self.delay_for(attempt)


def no_backoff(_attempt: int) -> float:
    """Zero-delay policy, for tests."""
    return 0.0


default_backoff = ExponentialBackoff()
