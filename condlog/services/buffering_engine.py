"""
Buffering engine: decides what happens to each incoming log event.

    no (or ended) request → ERROR and above written immediately, rest discarded
    identity, buffer full → dropped, CLB-BUF-001 recorded
    identity              → buffered; ERROR and above flag the request as failed

Nothing buffered is ever written here. Visibility is decided at flush time.
"""
from __future__ import annotations

from typing import Optional

from condlog.core import request_context
from condlog.core.buffer_store import BufferStore
from condlog.core.events import LogEvent
from condlog.core.request_context import RequestIdentity
from condlog.core.sink import EventSink, safe_write_event
from condlog.core.status import StatusChannel

DEFAULT_MAX_BUFFER_SIZE = 1000

# Sentinel: resolve the identity from the ambient context
AMBIENT = object()


class BufferingEngine:
    def __init__(
        self,
        store: BufferStore,
        sink: EventSink,
        status: StatusChannel,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
    ):
        self.store = store
        self.sink = sink
        self.status = status
        self.max_buffer_size = max(1, max_buffer_size)

    def append(self, event: LogEvent, identity: Optional[RequestIdentity] | object = AMBIENT) -> bool:
        """Route one event. Returns True if it was buffered or written."""
        if identity is AMBIENT:
            identity = request_context.get_identity()

        if identity is None or identity.is_closed:
            if event.is_error:
                return safe_write_event(self.sink, self.status, event)
            return False

        buffer = self.store.get_or_create(identity.request_id)
        if not buffer.try_append(event, self.max_buffer_size):
            self.status.record(
                "CLB-BUF-001",
                f"Buffer full for request {identity.request_id}, dropping log event: {event.message}",
            )
            return False

        if event.is_error:
            identity.mark_error()
        return True
