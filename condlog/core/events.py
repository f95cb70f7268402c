"""
Captured log events.

A LogEvent is rendered once, at capture time, and never changes afterwards;
flushing later only decides whether its rendered line becomes visible.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

# Summary level shown for requests that finished without error
SUMMARY_LEVEL = logging.INFO
ERROR_LEVEL = logging.ERROR


def _format_line(severity: int, message: str, timestamp: float, logger_name: str, thread_name: str) -> str:
    ts = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    level = logging.getLevelName(severity)
    return f"{ts} [{thread_name}] {level:<5} {logger_name} - {message}"


@dataclass(frozen=True)
class LogEvent:
    severity: int
    message: str
    timestamp: float = field(default_factory=time.time)
    rendered_payload: str = ""
    logger_name: str = "root"
    thread_name: str = ""

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.severity)

    @property
    def is_error(self) -> bool:
        return self.severity >= ERROR_LEVEL

    @classmethod
    def create(cls, severity: int, message: str, logger_name: str = "root") -> "LogEvent":
        """Build an event outside of stdlib logging, rendered with the default line pattern."""
        now = time.time()
        thread_name = threading.current_thread().name
        return cls(
            severity=severity,
            message=message,
            timestamp=now,
            rendered_payload=_format_line(severity, message, now, logger_name, thread_name),
            logger_name=logger_name,
            thread_name=thread_name,
        )

    @classmethod
    def from_record(cls, record: logging.LogRecord, rendered: str) -> "LogEvent":
        # structlog hands stdlib its event dict as the record message
        if isinstance(record.msg, dict):
            message = str(record.msg.get("event", ""))
        else:
            message = record.getMessage()
        return cls(
            severity=record.levelno,
            message=message,
            timestamp=record.created,
            rendered_payload=rendered,
            logger_name=record.name,
            thread_name=record.threadName or "",
        )
