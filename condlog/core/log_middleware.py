"""
ASGI middleware that opens a conditional logging scope per HTTP request.

A fresh request identity goes into the ambient context before the app runs,
so every log call made while serving the request is buffered under it. The
scope ends only once the wrapped app has returned: the response body has been
fully sent (streaming bodies included) and any background tasks have run.
The request is then flushed by outcome and the context cleared. Flushing never
raises into the request.
"""
from __future__ import annotations

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from condlog.core import request_context
from condlog.services.conditional_buffer_service import ConditionalBufferService

REQUEST_ID_HEADER = "x-request-id"


class ConditionalLoggingMiddleware:
    """Buffer logs per HTTP request and release them when it finishes."""

    def __init__(self, app: ASGIApp, service: ConditionalBufferService | None = None):
        self.app = app
        self.service = service

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        service = self.service
        if scope["type"] != "http" or service is None:
            await self.app(scope, receive, send)
            return

        request_id = service.begin_request()
        identity = request_context.get_identity()

        async def _send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, _send_wrapper)
        except Exception:
            # Unhandled app error: show this request's full trail
            if identity is not None:
                identity.mark_error()
            raise
        finally:
            service.end_request(request_id, identity)
