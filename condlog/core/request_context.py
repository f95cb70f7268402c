"""
Request-scoped logging identity.

The active request is held in a ContextVar so it follows the request through
asyncio tasks and Starlette's threadpool hops. The value is a mutable
RequestIdentity: every copy of the context points at the same object, so an
error marked on one thread is seen by whoever flushes the request later.

Plain worker threads do not inherit context vars; hand them the identity
explicitly with use_identity().
"""
from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional


class RequestIdentity:
    """Opaque request id plus a one-way error flag.

    Once the request has ended the identity is closed; anything still logged
    under it (a thread that outlived the request) is treated as context-free.
    """

    __slots__ = ("request_id", "_error", "_closed")

    def __init__(self, request_id: str):
        self.request_id = request_id
        self._error = threading.Event()
        self._closed = threading.Event()

    @property
    def has_error(self) -> bool:
        return self._error.is_set()

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def mark_error(self) -> None:
        self._error.set()

    def close(self) -> None:
        self._closed.set()

    def __repr__(self) -> str:
        return f"RequestIdentity(request_id={self.request_id!r}, has_error={self.has_error})"


request_identity_var: ContextVar[Optional[RequestIdentity]] = ContextVar(
    "request_identity", default=None
)


def generate_request_id() -> str:
    return str(uuid.uuid4())


def set_request_id(request_id: str) -> Token:
    """Activate a fresh identity for *request_id* with the error flag cleared.

    Replaces any identity already active in this context.
    """
    return request_identity_var.set(RequestIdentity(request_id))


def get_identity() -> Optional[RequestIdentity]:
    return request_identity_var.get()


def get_request_id() -> Optional[str]:
    identity = request_identity_var.get()
    return identity.request_id if identity is not None else None


def mark_error() -> None:
    """Flag the active request as failed. No-op outside a request."""
    identity = request_identity_var.get()
    if identity is not None:
        identity.mark_error()


def has_error() -> bool:
    identity = request_identity_var.get()
    return identity is not None and identity.has_error


def clear(token: Token | None = None) -> None:
    """Detach the active identity.

    With a token from set_request_id() the previous value is restored,
    otherwise the context is simply emptied.
    """
    if token is not None:
        try:
            request_identity_var.reset(token)
            return
        except ValueError:
            # Token created in a different context
            pass
    request_identity_var.set(None)


@contextmanager
def use_identity(identity: Optional[RequestIdentity]) -> Iterator[Optional[RequestIdentity]]:
    """Run a block under an existing identity, e.g. inside a worker thread."""
    token = request_identity_var.set(identity)
    try:
        yield identity
    finally:
        request_identity_var.reset(token)
