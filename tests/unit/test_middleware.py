"""Tests for the middleware pipeline."""

import asyncio

import pytest

from heclogger.config import resolve_settings
from heclogger.context import Normalizer
from heclogger.errors import ConfigError, MiddlewareError
from heclogger.middleware import MiddlewarePipeline

INSTANCE = resolve_settings({"token": "token-value"})
normalizer = Normalizer(lambda candidate: resolve_settings(candidate or INSTANCE, INSTANCE))


@pytest.fixture
def context():
    return normalizer.normalize({"message": {"n": 0}})


class TestRegister:
    """Registering steps."""

    def test_register_appends(self):
        pipeline = MiddlewarePipeline()

        def first(context):
            return context

        def second(context):
            return context

        pipeline.register(first)
        pipeline.register(second)

        assert len(pipeline) == 2

    @pytest.mark.parametrize("step", [None, "step", 42, {"call": True}])
    def test_rejects_non_callables(self, step):
        pipeline = MiddlewarePipeline()
        with pytest.raises(ConfigError, match="callable"):
            pipeline.register(step)
        assert len(pipeline) == 0


class TestRun:
    """Running the chain."""

    async def test_empty_pipeline_passes_context_through(self, context):
        result = await MiddlewarePipeline().run(context)
        assert result.ok
        assert result.context is context

    async def test_steps_run_in_registration_order(self, context):
        pipeline = MiddlewarePipeline()
        order = []

        for name in ("a", "b", "c"):

            async def step(ctx, name=name):
                order.append(name)
                ctx.message["n"] += 1
                return ctx

            pipeline.register(step)

        result = await pipeline.run(context)

        assert order == ["a", "b", "c"]
        assert result.context.message == {"n": 3}

    async def test_sync_and_async_steps(self, context):
        pipeline = MiddlewarePipeline()

        def sync_step(ctx):
            ctx.severity = "error"

        async def async_step(ctx):
            await asyncio.sleep(0)
            ctx.message = {"wrapped": ctx.message}
            return ctx

        pipeline.register(sync_step)
        pipeline.register(async_step)

        result = await pipeline.run(context)

        assert result.ok
        assert result.context.severity == "error"
        assert result.context.message == {"wrapped": {"n": 0}}

    async def test_returned_context_replaces_current(self, context):
        pipeline = MiddlewarePipeline()
        replacement = normalizer.normalize({"message": "replaced"})
        seen = []

        pipeline.register(lambda ctx: replacement)
        pipeline.register(lambda ctx: seen.append(ctx))

        result = await pipeline.run(context)

        assert seen == [replacement]
        assert result.context is replacement

    async def test_steps_never_overlap(self, context):
        pipeline = MiddlewarePipeline()
        active = []
        overlaps = []

        for _ in range(3):

            async def step(ctx):
                if active:
                    overlaps.append(True)
                active.append(1)
                await asyncio.sleep(0.005)
                active.pop()

            pipeline.register(step)

        await pipeline.run(context)
        assert overlaps == []

    async def test_error_aborts_chain(self, context):
        pipeline = MiddlewarePipeline()
        calls = []

        def mutate(ctx):
            calls.append("mutate")
            ctx.message["seen"] = True

        def fail(ctx):
            calls.append("fail")
            raise ValueError("bad event")

        def never(ctx):
            calls.append("never")

        for step in (mutate, fail, never):
            pipeline.register(step)

        result = await pipeline.run(context)

        assert calls == ["mutate", "fail"]
        assert not result.ok
        assert isinstance(result.error, MiddlewareError)
        assert isinstance(result.error.__cause__, ValueError)
        assert str(result.error) == "bad event"
        # Mutations made before the failure stay visible
        assert result.context.message == {"n": 0, "seen": True}
        assert result.error.context is result.context

    async def test_middleware_error_passed_through(self, context):
        pipeline = MiddlewarePipeline()
        error = MiddlewareError("rejected by policy")

        async def reject(ctx):
            raise error

        pipeline.register(reject)
        result = await pipeline.run(context)

        assert result.error is error
        assert error.context is context

    async def test_step_registered_during_run_waits_for_next_run(self, context):
        pipeline = MiddlewarePipeline()
        late_calls = []

        def late(ctx):
            late_calls.append(ctx)

        pipeline.register(lambda ctx: pipeline.register(late))

        await pipeline.run(context)
        assert late_calls == []

        await pipeline.run(context)
        assert late_calls == [context]
