"""
Pytest configuration for condlog tests.

Provides an in-memory sink, a controllable monotonic clock and a started
service, and makes sure no request identity or root handler leaks between
tests.
"""

import io
import logging
import os

# Keep a developer's .env / environment out of the tests
for _key in list(os.environ):
    if _key.startswith("CONDLOG_"):
        del os.environ[_key]

import pytest
import structlog

from condlog.config import Settings
from condlog.core import request_context
from condlog.core.sink import EventSink
from condlog.core.status import StatusChannel, status_logger
from condlog.services.conditional_buffer_service import ConditionalBufferService


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _clean_request_context():
    request_context.clear()
    yield
    request_context.clear()


@pytest.fixture(autouse=True)
def _restore_logging():
    """setup_logging() rewires the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    status_handlers = status_logger.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    status_logger.handlers[:] = status_handlers
    structlog.reset_defaults()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def sink(stream):
    return EventSink(stream)


@pytest.fixture
def status():
    return StatusChannel(max_entries=100)


@pytest.fixture
def settings():
    return Settings(max_buffer_size=1000, buffer_timeout_s=600, sweep_interval_s=300, stop_timeout_s=2.0)


@pytest.fixture
def service(settings, sink, status, clock):
    svc = ConditionalBufferService(settings=settings, sink=sink, status=status, clock=clock)
    svc.start()
    yield svc
    svc.stop()
