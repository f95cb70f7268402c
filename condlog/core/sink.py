"""
Output sink for released log events.

One lock gates every write: a single immediate line or a whole flushed block
goes out in one critical section, so blocks from different requests never
interleave. Encoding happens before the lock is taken.
"""
from __future__ import annotations

import sys
import threading
from typing import Callable, Iterable, Optional, TextIO

from condlog.core.events import LogEvent
from condlog.core.status import StatusChannel

Encoder = Callable[[LogEvent], str]


def encode_line(event: LogEvent) -> str:
    """Default encoder: the payload rendered at capture time, one per line."""
    payload = event.rendered_payload or f"{event.level_name} {event.logger_name} - {event.message}"
    return payload if payload.endswith("\n") else payload + "\n"


class EventSink:
    """Serialized writer over a text stream."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        encoder: Optional[Encoder] = encode_line,
        owns_stream: bool = False,
    ):
        self.stream = stream if stream is not None else sys.stdout
        self.encoder = encoder
        self._owns_stream = owns_stream
        self._lock = threading.Lock()

    def encode(self, event: LogEvent) -> str:
        if self.encoder is None:
            raise RuntimeError("EventSink has no encoder")
        return self.encoder(event)

    def write_event(self, event: LogEvent) -> None:
        data = self.encode(event)
        with self._lock:
            self.stream.write(data)
            self.stream.flush()

    def write_block(self, header: str, events: Iterable[LogEvent], footer: str) -> None:
        """Write header, events and footer as one uninterrupted block."""
        body = [self.encode(e) for e in events]
        with self._lock:
            self.stream.write(header + "\n")
            for line in body:
                self.stream.write(line)
            self.stream.write(footer + "\n")
            self.stream.flush()

    def close(self) -> None:
        with self._lock:
            try:
                self.stream.flush()
            finally:
                if self._owns_stream:
                    self.stream.close()


def safe_write_event(sink: EventSink, status: StatusChannel, event: LogEvent) -> bool:
    try:
        sink.write_event(event)
        return True
    except Exception as e:
        status.record("CLB-SNK-001", "Failed to write log event", exc=e)
        return False


def safe_write_block(
    sink: EventSink,
    status: StatusChannel,
    header: str,
    events: Iterable[LogEvent],
    footer: str,
) -> bool:
    try:
        sink.write_block(header, events, footer)
        return True
    except Exception as e:
        status.record("CLB-SNK-001", "Failed to write log block", exc=e)
        return False
