"""
FastAPI wiring for conditional request logging.

create_app() builds an application whose logs are buffered per request:
the service is created with a stdout sink, logging is routed into it, the
middleware opens and closes a scope around every request, and the lifespan
starts the service on startup and stops (drains) it on shutdown.
"""
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional, TextIO

from fastapi import FastAPI

from condlog.config import Settings, settings as default_settings
from condlog.core.log_middleware import ConditionalLoggingMiddleware
from condlog.core.sink import EventSink
from condlog.core.structured_logging import setup_logging
from condlog.services.conditional_buffer_service import ConditionalBufferService

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def create_app(
    app_settings: Optional[Settings] = None,
    stream: Optional[TextIO] = None,
    service: Optional[ConditionalBufferService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = app_settings or default_settings

    if service is None:
        service = ConditionalBufferService(
            settings=app_settings,
            sink=EventSink(stream if stream is not None else sys.stdout),
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(service, log_level=app_settings.log_level_no, log_format=app_settings.log_format)
        # Refuses to start without a usable sink; the app fails to start too
        service.start()
        logger.info("condlog_started", extra={"version": API_VERSION})
        try:
            yield
        finally:
            service.stop()

    app = FastAPI(
        title=app_settings.app_name,
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.conditional_buffer = service

    app.add_middleware(ConditionalLoggingMiddleware, service=service)

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok" if service.is_started else "stopped",
            "buffers": service.buffer_count,
            "version": API_VERSION,
        }

    return app
