"""
Flush policy: what a finished request gets to show.

A failed request releases its whole trail; a successful one releases only
its summary-level (INFO) lines, and nothing at all when it had none. Either
way the output is one framed block written under the sink lock.
"""
from __future__ import annotations

import logging

from condlog.core.buffer_store import BufferStore
from condlog.core.events import SUMMARY_LEVEL
from condlog.core.sink import EventSink, safe_write_block
from condlog.core.status import StatusChannel

ERROR_HEADER = "=== REQUEST COMPLETED WITH ERROR - Flushing {count} logs for request: {request_id} ==="
SUCCESS_HEADER = (
    "=== REQUEST COMPLETED SUCCESSFULLY - Showing {count} {level} logs for request: {request_id} ==="
)
FOOTER = "=== End of request logs for: {request_id} ==="


class FlushPolicy:
    def __init__(
        self,
        store: BufferStore,
        sink: EventSink,
        status: StatusChannel,
        summary_level: int = SUMMARY_LEVEL,
    ):
        self.store = store
        self.sink = sink
        self.status = status
        self.summary_level = summary_level

    def flush(self, request_id: str, had_error: bool) -> int:
        """Remove the request's buffer and write the visible subset.

        Returns the number of events written. Unknown ids are a no-op.
        """
        buffer = self.store.remove(request_id)
        if buffer is None:
            return 0

        events = buffer.events()

        if had_error:
            header = ERROR_HEADER.format(count=len(events), request_id=request_id)
        else:
            events = tuple(e for e in events if e.severity == self.summary_level)
            if not events:
                return 0
            header = SUCCESS_HEADER.format(
                count=len(events),
                level=logging.getLevelName(self.summary_level),
                request_id=request_id,
            )

        footer = FOOTER.format(request_id=request_id)
        if not safe_write_block(self.sink, self.status, header, events, footer):
            return 0
        return len(events)
