"""Pending event queue with a parallel byte-size tally."""

import logging
from dataclasses import dataclass

from .context import Context, body_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Batch:
    """An immutable snapshot of drained contexts and their sizes."""

    contexts: tuple[Context, ...] = ()
    sizes: tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.contexts)

    @property
    def total_size(self) -> int:
        return sum(self.sizes)


class BatchQueue:
    """
    Ordered queue of pending contexts.

    Contexts and their serialized sizes are kept index-for-index. All
    mutations are synchronous, so under asyncio no caller can observe a
    partially updated queue.
    """

    def __init__(self):
        self._contexts: list[Context] = []
        self._sizes: list[int] = []

    def __len__(self) -> int:
        return len(self._contexts)

    def __bool__(self) -> bool:
        return bool(self._contexts)

    def enqueue(self, context: Context) -> int:
        """Append a context and return the new cumulative size in bytes."""
        size = body_size(context)
        self._contexts.append(context)
        self._sizes.append(size)
        total = self.total_size()
        logger.debug("Queued event (%d bytes, %d queued, %d bytes total)", size, len(self), total)
        return total

    def total_size(self) -> int:
        """Sum of the recorded sizes of every queued context."""
        return sum(self._sizes)

    def drain_all(self) -> Batch:
        """Swap in empty sequences and return everything that was queued."""
        contexts, sizes = self._contexts, self._sizes
        self._contexts, self._sizes = [], []
        return Batch(contexts=tuple(contexts), sizes=tuple(sizes))

    def take_newest(self) -> Context | None:
        """Remove and return only the most recently queued context."""
        if not self._contexts:
            return None
        self._sizes.pop()
        return self._contexts.pop()
