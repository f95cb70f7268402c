"""
Structured logging with structlog, routed through the conditional buffer.

Configures structlog over stdlib logging. Existing logger.info() calls keep
working and get enriched with the same processors; every record ends up in
the ConditionalBufferHandler, rendered as a JSON line (or a console line)
that carries the active request_id.
"""
from __future__ import annotations

import logging
import sys

import structlog

from condlog.core import request_context
from condlog.core.log_handler import ConditionalBufferHandler
from condlog.core.status import status_logger
from condlog.services.conditional_buffer_service import ConditionalBufferService

SERVICE_NAME = "condlog"


def _inject_request_id(logger_name: str, method_name: str, event_dict: dict) -> dict:
    """Structlog processor: inject the active request id from the ambient context."""
    rid = request_context.get_request_id()
    if rid:
        event_dict["request_id"] = rid
    return event_dict


def _add_log_level_lower(logger_name: str, method_name: str, event_dict: dict) -> dict:
    """Normalize log level to lowercase for consistency."""
    level = event_dict.get("level")
    if level:
        event_dict["level"] = level.lower()
    return event_dict


def build_formatter(log_format: str = "json") -> structlog.stdlib.ProcessorFormatter:
    processors: list = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if log_format == "console":
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*_shared_processors(), structlog.stdlib.ExtraAdder()],
        processors=processors,
    )


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _add_log_level_lower,
        structlog.stdlib.add_logger_name,
        _inject_request_id,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(
    service: ConditionalBufferService,
    log_level: int | str = logging.DEBUG,
    log_format: str = "json",
) -> ConditionalBufferHandler:
    """Initialize structlog + stdlib logging with the conditional buffer as the only root handler.

    Call once at startup, before any logging calls. Returns the installed handler.
    """
    # ── Configure structlog ──────────────────────────────────────────
    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = build_formatter(log_format)

    # ── Buffering handler on the root logger ─────────────────────────
    handler = ConditionalBufferHandler(service)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)
    root.addHandler(handler)

    # ── Status diagnostics go straight to stderr ─────────────────────
    status_handler = logging.StreamHandler(sys.stderr)
    status_handler.setFormatter(formatter)
    status_logger.handlers.clear()
    status_logger.addHandler(status_handler)
    status_logger.setLevel(logging.INFO)

    # Quiet noisy third-party loggers
    for noisy in ("httpcore", "httpx", "asyncio", "watchfiles", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return handler
