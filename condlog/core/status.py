"""
Status channel: diagnostics about the buffering machinery itself.

Buffer-full drops, sweep summaries and sink failures are recorded here as
coded entries in a bounded in-memory ring and echoed on the ``condlog.status``
logger. That logger never propagates to the root logger, so a diagnostic can
not be routed back into the buffering handler that produced it.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from condlog.core.errors.registry import error_registry

status_logger = logging.getLogger("condlog.status")
status_logger.propagate = False

MAX_STATUS_ENTRIES = 200

_SEVERITY_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


@dataclass
class StatusEntry:
    code: str
    level: int
    message: str
    timestamp: float = field(default_factory=time.time)
    exc: Optional[BaseException] = None
    title: str = ""
    remediation: list[str] = field(default_factory=list)

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "level": self.level_name.lower(),
            "message": self.message,
            "timestamp": self.timestamp,
            "error": repr(self.exc) if self.exc is not None else None,
            "title": self.title,
            "remediation": list(self.remediation),
        }


class StatusChannel:
    """Thread-safe ring buffer of status entries."""

    def __init__(self, max_entries: int = MAX_STATUS_ENTRIES):
        self._entries: deque[StatusEntry] = deque(maxlen=max(1, max_entries))
        self._lock = threading.Lock()

    def record(self, code: str, message: str, exc: BaseException | None = None) -> StatusEntry:
        """Record a diagnostic; the level comes from the code's registry severity."""
        entry_def = error_registry.get(code)
        level = _SEVERITY_LEVELS[entry_def.severity] if entry_def else logging.WARNING
        entry = StatusEntry(code=code, level=level, message=message, exc=exc)
        if entry_def is not None:
            entry.title = entry_def.title
            entry.remediation = list(entry_def.remediation)
        with self._lock:
            self._entries.append(entry)

        try:
            status_logger.log(
                level,
                message,
                exc_info=exc,
                extra={"status.code": code},
            )
        except Exception:
            pass  # diagnostics never raise into the caller
        return entry

    def get_entries(self, limit: int = MAX_STATUS_ENTRIES, min_level: int = logging.NOTSET) -> list[StatusEntry]:
        with self._lock:
            entries = [e for e in self._entries if e.level >= min_level]
        return entries[-limit:]

    def count(self, code: str) -> int:
        with self._lock:
            return sum(1 for e in self._entries if e.code == code)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
