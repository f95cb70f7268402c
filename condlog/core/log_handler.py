"""
stdlib logging handler that feeds the conditional buffer.

Install it on the root logger (setup_logging does) and every record,
including structlog output bridged through stdlib, is captured as a LogEvent
rendered by this handler's formatter, then routed by the service.
"""
from __future__ import annotations

import logging
import threading

from condlog.core.events import LogEvent
from condlog.services.conditional_buffer_service import ConditionalBufferService


class ConditionalBufferHandler(logging.Handler):
    """Captures log records into request buffers."""

    def __init__(self, service: ConditionalBufferService, level: int = logging.NOTSET):
        super().__init__(level)
        self.service = service
        self._guard = threading.local()

    def handle(self, record: logging.LogRecord) -> bool:
        # No handler-wide lock; buffers synchronize per request.
        rv = self.filter(record)
        if isinstance(rv, logging.LogRecord):
            record = rv
        if rv:
            self.emit(record)
        return bool(rv)

    def emit(self, record: logging.LogRecord) -> None:
        # Re-entrant logging from inside the buffering path is dropped
        if getattr(self._guard, "active", False):
            return
        self._guard.active = True
        try:
            event = LogEvent.from_record(record, self.format(record))
            self.service.append(event)
        except Exception:
            self.handleError(record)
        finally:
            self._guard.active = False
