"""
Thin logger wrapper for request-scoped conditional logging.

Same call surface as a stdlib logger; records flow through whatever handlers
the root logger has, which after setup_logging() is the conditional buffer.
"""
from __future__ import annotations

import logging
import re
from typing import Any

_PLACEHOLDER = re.compile(r"%[^%]")


def _placeholder_count(message: str) -> int:
    return len(_PLACEHOLDER.findall(message.replace("%%", "")))


class ConditionalLogger:
    """Named logger accepting either a class or a dotted name."""

    def __init__(self, name_or_class: str | type):
        if isinstance(name_or_class, type):
            name = f"{name_or_class.__module__}.{name_or_class.__qualname__}"
        else:
            name = name_or_class
        self._logger = logging.getLogger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def name(self) -> str:
        return self._logger.name

    def debug(self, message: str, *args: Any) -> None:
        self._logger.debug(message, *args, stacklevel=2)

    def info(self, message: str, *args: Any) -> None:
        self._logger.info(message, *args, stacklevel=2)

    def warning(self, message: str, *args: Any) -> None:
        self._logger.warning(message, *args, stacklevel=2)

    warn = warning

    def error(self, message: str, *args: Any) -> None:
        """Log at ERROR.

        A trailing exception that no %-placeholder consumes is attached as
        exc_info, so both ``error("failed", exc)`` and
        ``error("failed %s", item, exc)`` carry the traceback.
        """
        if args and isinstance(args[-1], BaseException) and _placeholder_count(message) < len(args):
            *fmt_args, exc = args
            self._logger.error(message, *fmt_args, exc_info=exc, stacklevel=2)
        else:
            self._logger.error(message, *args, stacklevel=2)

    def exception(self, message: str, *args: Any) -> None:
        self._logger.exception(message, *args, stacklevel=2)


def get_logger(name_or_class: str | type) -> ConditionalLogger:
    return ConditionalLogger(name_or_class)
