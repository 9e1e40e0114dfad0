"""Tests for the pending event queue."""

from hypothesis import given, settings
from strategies import event_batches

from heclogger.batch_queue import Batch, BatchQueue
from heclogger.config import resolve_settings
from heclogger.context import Normalizer, body_size

INSTANCE = resolve_settings({"token": "token-value"})
normalizer = Normalizer(lambda candidate: resolve_settings(candidate or INSTANCE, INSTANCE))


def make_context(message="m"):
    return normalizer.normalize({"message": message, "metadata": {"time": 1700000000}})


class TestBatchQueue:
    """Queue and size tally."""

    def test_empty(self):
        queue = BatchQueue()
        assert len(queue) == 0
        assert not queue
        assert queue.total_size() == 0

    def test_enqueue_returns_cumulative_size(self):
        queue = BatchQueue()
        first, second = make_context("a"), make_context("bb")

        assert queue.enqueue(first) == body_size(first)
        assert queue.enqueue(second) == body_size(first) + body_size(second)
        assert len(queue) == 2

    def test_drain_all_returns_snapshot_in_order(self):
        queue = BatchQueue()
        contexts = [make_context(str(i)) for i in range(3)]
        for context in contexts:
            queue.enqueue(context)

        batch = queue.drain_all()

        assert list(batch.contexts) == contexts
        assert batch.sizes == tuple(body_size(c) for c in contexts)
        assert len(queue) == 0
        assert queue.total_size() == 0

    def test_drained_batch_decoupled_from_new_events(self):
        queue = BatchQueue()
        queue.enqueue(make_context("old"))
        batch = queue.drain_all()

        queue.enqueue(make_context("new"))

        assert len(batch) == 1
        assert batch.contexts[0].message == "old"
        assert len(queue) == 1

    def test_drain_empty(self):
        batch = BatchQueue().drain_all()
        assert batch == Batch()
        assert batch.total_size == 0

    def test_take_newest(self):
        queue = BatchQueue()
        old, new = make_context("old"), make_context("new")
        queue.enqueue(old)
        queue.enqueue(new)

        assert queue.take_newest() is new
        assert len(queue) == 1
        assert queue.total_size() == body_size(old)

    def test_take_newest_empty(self):
        assert BatchQueue().take_newest() is None

    @given(event_batches)
    @settings(max_examples=30)
    def test_size_tally_matches_contents(self, seeds):
        """Property: the tally always equals the sum of the queued sizes."""
        queue = BatchQueue()
        expected = 0
        for seed in seeds:
            context = normalizer.normalize(seed)
            expected += body_size(context)
            assert queue.enqueue(context) == expected
            assert queue.total_size() == expected

        if len(seeds) > 1:
            newest = queue.take_newest()
            expected -= body_size(newest)
            assert queue.total_size() == expected

        batch = queue.drain_all()
        assert batch.total_size == expected
        assert queue.total_size() == 0
        assert len(queue) == 0
