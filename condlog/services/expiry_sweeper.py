"""
Expiry sweeper: reclaims buffers of requests that never finished.

A request that crashed, was abandoned, or leaked its scope never reaches
flush, so its buffer would stay in memory forever. The sweeper runs on a
daemon thread, waking every ``interval_s`` seconds, and silently drops every
buffer untouched for longer than ``timeout_s``. No flush decision is possible
for such a request, so nothing is written.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from condlog.core.buffer_store import BufferStore
from condlog.core.status import StatusChannel

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_TIMEOUT_S = 600
DEFAULT_SWEEP_INTERVAL_S = 300
DEFAULT_STOP_TIMEOUT_S = 30.0


class ExpirySweeper:
    def __init__(
        self,
        store: BufferStore,
        status: StatusChannel,
        timeout_s: float = DEFAULT_BUFFER_TIMEOUT_S,
        interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.status = status
        self.timeout_s = timeout_s
        self.interval_s = interval_s
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -- public API --------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="conditional-buffer-sweeper",
        )
        self._thread.start()

    def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT_S) -> bool:
        """Signal the sweeper and wait up to *timeout* seconds for its current pass.

        Returns False if the thread is still alive afterwards.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("sweeper_stop_timeout", extra={"timeout_s": timeout})
            return False
        self._thread = None
        return True

    def sweep_expired(self, timeout_s: float | None = None) -> int:
        """Drop every buffer idle for longer than *timeout_s*. Returns the count."""
        if timeout_s is None:
            timeout_s = self.timeout_s
        now = self._clock()
        removed = 0

        # Weakly consistent: buffers created after the snapshot wait for the next pass
        for request_id, buffer in self.store.snapshot():
            if buffer.is_expired(timeout_s, now) and self.store.remove_if_same(request_id, buffer):
                removed += 1

        if removed > 0:
            self.status.record("CLB-SWP-001", f"Cleanup completed: removed {removed} expired buffers")
        return removed

    def force_flush_all(self) -> int:
        """Discard every buffer without writing anything."""
        removed = self.store.clear()
        if removed > 0:
            self.status.record("CLB-SWP-002", f"Force cleanup: removed {removed} buffers")
        return removed

    # -- internals ---------------------------------------------------------

    def _run(self) -> None:
        # Fixed delay: first pass one interval after start
        while not self._stop_event.wait(self.interval_s):
            try:
                self.sweep_expired()
            except Exception as e:
                # The sweeper must never die on a bad pass
                self.status.record("CLB-SWP-003", "Sweep pass failed", exc=e)
