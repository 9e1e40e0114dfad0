"""Pytest configuration and shared fixtures for heclogger tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from mocks import CallbackRecorder, FakeTransport, SinkRecorder

from heclogger import HecLogger, no_backoff

TOKEN = "11111111-2222-3333-4444-555555555555"


async def _no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def token() -> str:
    return TOKEN


@pytest.fixture
def base_config() -> dict:
    """Minimal valid configuration."""
    return {"token": TOKEN, "host": "hec.test", "protocol": "http"}


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sink() -> SinkRecorder:
    return SinkRecorder()


@pytest.fixture
def callback() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
async def make_logger(
    base_config: dict, transport: FakeTransport, sink: SinkRecorder
) -> AsyncGenerator[Callable[..., HecLogger], None]:
    """
    Build HecLoggers wired to the fake transport and sink, with no backoff.

    Loggers are closed (timers stopped) after the test.
    """
    created: list[HecLogger] = []

    def factory(transport_: Any = None, **overrides: Any) -> HecLogger:
        hec = HecLogger(
            {**base_config, **overrides},
            transport=transport_ or transport,
            backoff=no_backoff,
            sleep=_no_sleep,
        )
        hec.error = sink
        created.append(hec)
        return hec

    yield factory

    for hec in created:
        await hec._timer.aclose()


@pytest.fixture
def sample_event() -> dict:
    """Return a sample event for testing."""
    return {
        "message": {"temperature": "70F", "chickenCount": 500},
        "severity": "info",
        "metadata": {
            "source": "chicken coop",
            "sourcetype": "httpevent",
            "index": "main",
            "host": "farm.local",
        },
    }
