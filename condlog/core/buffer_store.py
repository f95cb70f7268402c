"""
Per-request event buffers and the shared store that owns them.

The store is the only shared mutable structure in the buffering path. Its
lock covers bookkeeping only (create, remove, snapshot, clear); appends and
reads take the individual buffer's lock, so unrelated requests never contend
with each other beyond a dict insert.

Timestamps are monotonic seconds from the injected clock.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from condlog.core.events import LogEvent

Clock = Callable[[], float]


class EventBuffer:
    """Append-only, bounded, ordered events for one request."""

    __slots__ = ("request_id", "created_at", "_last_touched_at", "_events", "_lock", "_clock")

    def __init__(self, request_id: str, clock: Clock = time.monotonic):
        self.request_id = request_id
        self._clock = clock
        self._events: List[LogEvent] = []
        self._lock = threading.Lock()
        self.created_at = clock()
        self._last_touched_at = self.created_at

    @property
    def last_touched_at(self) -> float:
        return self._last_touched_at

    def try_append(self, event: LogEvent, max_size: int) -> bool:
        """Append unless the buffer already holds *max_size* events."""
        with self._lock:
            if len(self._events) >= max_size:
                return False
            self._events.append(event)
            self._last_touched_at = self._clock()
            return True

    def events(self) -> Tuple[LogEvent, ...]:
        """Snapshot of the buffered events in insertion order. Counts as a touch."""
        with self._lock:
            self._last_touched_at = self._clock()
            return tuple(self._events)

    def is_expired(self, timeout_s: float, now: float | None = None) -> bool:
        if now is None:
            now = self._clock()
        return (now - self._last_touched_at) > timeout_s

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __repr__(self) -> str:
        return f"EventBuffer(request_id={self.request_id!r}, size={len(self)})"


class BufferStore:
    """Concurrent mapping of request id → EventBuffer."""

    def __init__(self, clock: Clock = time.monotonic):
        self._buffers: Dict[str, EventBuffer] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get_or_create(self, request_id: str) -> EventBuffer:
        buffer = self._buffers.get(request_id)
        if buffer is not None:
            return buffer
        with self._lock:
            buffer = self._buffers.get(request_id)
            if buffer is None:
                buffer = EventBuffer(request_id, clock=self._clock)
                self._buffers[request_id] = buffer
            return buffer

    def get(self, request_id: str) -> Optional[EventBuffer]:
        return self._buffers.get(request_id)

    def remove(self, request_id: str) -> Optional[EventBuffer]:
        with self._lock:
            return self._buffers.pop(request_id, None)

    def remove_if_same(self, request_id: str, buffer: EventBuffer) -> bool:
        """Remove *request_id* only while it still maps to *buffer*."""
        with self._lock:
            if self._buffers.get(request_id) is buffer:
                del self._buffers[request_id]
                return True
            return False

    def snapshot(self) -> List[Tuple[str, EventBuffer]]:
        with self._lock:
            return list(self._buffers.items())

    def clear(self) -> int:
        with self._lock:
            removed = len(self._buffers)
            self._buffers.clear()
            return removed

    def request_ids(self) -> List[str]:
        with self._lock:
            return list(self._buffers.keys())

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._buffers

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffers)
