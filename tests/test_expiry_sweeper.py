"""
Tests for the expiry sweeper: idle-buffer eviction, forced drain, and the
background thread lifecycle.
"""

import logging
import time

import pytest

from condlog.core.buffer_store import BufferStore
from condlog.core.events import LogEvent
from condlog.services.expiry_sweeper import ExpirySweeper


@pytest.fixture
def store(clock):
    return BufferStore(clock=clock)


@pytest.fixture
def sweeper(store, status, clock):
    s = ExpirySweeper(store, status, timeout_s=60, interval_s=30, clock=clock)
    yield s
    s.stop(timeout=2)


def _touch(store, request_id):
    store.get_or_create(request_id).try_append(LogEvent.create(logging.INFO, "x"), max_size=100)


class TestSweepExpired:

    def test_removes_idle_keeps_fresh(self, sweeper, store, clock):
        _touch(store, "old")
        clock.advance(50)
        _touch(store, "fresh")
        clock.advance(20)  # old idle 70s, fresh idle 20s

        assert sweeper.sweep_expired() == 1
        assert "old" not in store
        assert "fresh" in store

    def test_recent_touch_keeps_buffer_alive(self, sweeper, store, clock):
        _touch(store, "busy")
        clock.advance(50)
        _touch(store, "busy")
        clock.advance(50)
        assert sweeper.sweep_expired() == 0
        assert "busy" in store

    def test_read_counts_as_touch(self, sweeper, store, clock):
        _touch(store, "r")
        clock.advance(50)
        store.get("r").events()
        clock.advance(50)
        assert sweeper.sweep_expired() == 0

    def test_explicit_timeout_overrides_configured(self, sweeper, store, clock):
        _touch(store, "r")
        clock.advance(10)
        assert sweeper.sweep_expired(timeout_s=5) == 1

    def test_expired_buffers_are_silent(self, sweeper, store, clock, stream, status):
        """Eviction writes nothing to the sink, only a status summary."""
        _touch(store, "a")
        _touch(store, "b")
        clock.advance(120)
        assert sweeper.sweep_expired() == 2
        assert stream.getvalue() == ""
        assert status.count("CLB-SWP-001") == 1
        assert "removed 2 expired buffers" in status.get_entries()[-1].message

    def test_nothing_expired_no_status(self, sweeper, store, status):
        _touch(store, "a")
        assert sweeper.sweep_expired() == 0
        assert len(status) == 0


class TestForceFlushAll:

    def test_drains_everything_silently(self, sweeper, store, stream, status):
        _touch(store, "a")
        _touch(store, "b")
        assert sweeper.force_flush_all() == 2
        assert len(store) == 0
        assert stream.getvalue() == ""
        assert status.count("CLB-SWP-002") == 1

    def test_empty_store_no_status(self, sweeper, status):
        assert sweeper.force_flush_all() == 0
        assert len(status) == 0


class TestSweeperThread:

    def _wait_for(self, predicate, timeout=3.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    def test_background_pass_evicts(self, status):
        store = BufferStore()
        sweeper = ExpirySweeper(store, status, timeout_s=0.01, interval_s=0.02)
        _touch(store, "abandoned")
        sweeper.start()
        try:
            assert sweeper.running
            assert self._wait_for(lambda: "abandoned" not in store)
        finally:
            assert sweeper.stop(timeout=2) is True
        assert not sweeper.running

    def test_start_is_idempotent(self, sweeper):
        sweeper.start()
        thread = sweeper._thread
        sweeper.start()
        assert sweeper._thread is thread

    def test_stop_before_start(self, status, store):
        assert ExpirySweeper(store, status).stop(timeout=0.1) is True

    def test_failing_pass_is_recorded_and_loop_survives(self, status, store, monkeypatch):
        sweeper = ExpirySweeper(store, status, timeout_s=1, interval_s=0.01)

        def boom(timeout_s=None):
            raise RuntimeError("bad pass")

        monkeypatch.setattr(sweeper, "sweep_expired", boom)
        sweeper.start()
        try:
            assert self._wait_for(lambda: status.count("CLB-SWP-003") >= 2)
            assert sweeper.running
        finally:
            sweeper.stop(timeout=2)

    def test_interval_change_applies_to_running_sweeper(self, status, store, monkeypatch):
        """A shorter interval is used from the next wait on, no restart needed."""
        sweeper = ExpirySweeper(store, status, timeout_s=1, interval_s=0.2)
        passes = []
        monkeypatch.setattr(sweeper, "sweep_expired", lambda timeout_s=None: passes.append(1))
        sweeper.start()
        try:
            sweeper.interval_s = 0.01
            # At the old 0.2s interval ten passes would take two seconds
            assert self._wait_for(lambda: len(passes) >= 10, timeout=1.0)
        finally:
            sweeper.stop(timeout=2)
