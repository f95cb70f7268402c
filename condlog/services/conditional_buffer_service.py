"""
Conditional Buffer Service
==========================

PURPOSE:
    Owns the request buffers and exposes the request lifecycle to whatever
    sits at the edge of a request (HTTP middleware, job runner, CLI command):

        begin_request()        → fresh identity in the ambient context
        append(event)          → buffered / dropped / written now
        end_request(id)        → flush by outcome, then clear the context

    The service is a plain instance with an explicit start()/stop(); nothing
    about it is global. start() launches the expiry sweeper and refuses to
    run without a usable sink. stop() halts the sweeper, drains every
    remaining buffer without output and releases the sink.

FAILURE MODEL:
    Nothing in here raises into a request. Full buffers, sink errors and
    flush errors become status entries; only a missing sink or encoder is
    fatal, and only to start().
"""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from condlog.config import Settings
from condlog.core import request_context
from condlog.core.buffer_store import BufferStore
from condlog.core.errors import ConfigurationError
from condlog.core.events import LogEvent
from condlog.core.request_context import RequestIdentity
from condlog.core.sink import EventSink
from condlog.core.status import StatusChannel
from condlog.services.buffering_engine import AMBIENT, BufferingEngine
from condlog.services.expiry_sweeper import ExpirySweeper
from condlog.services.flush_policy import FlushPolicy


class ConditionalBufferService:
    """Request-scoped conditional log buffering."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sink: Optional[EventSink] = None,
        status: Optional[StatusChannel] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or Settings()
        self.sink = sink
        self.status = status or StatusChannel(max_entries=self.settings.status_history)
        self.store = BufferStore(clock=clock)
        self._clock = clock
        self._lifecycle_lock = threading.Lock()
        self._started = False
        self._stopped_warning_sent = False

        self.max_buffer_size = self.settings.max_buffer_size
        self.buffer_timeout_s = self.settings.buffer_timeout_s
        self.sweep_interval_s = self.settings.sweep_interval_s

        self._engine: Optional[BufferingEngine] = None
        self._flush_policy: Optional[FlushPolicy] = None
        self.sweeper = ExpirySweeper(
            self.store,
            self.status,
            timeout_s=self.buffer_timeout_s,
            interval_s=self.sweep_interval_s,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Configuration & lifecycle
    # ------------------------------------------------------------------

    @property
    def is_started(self) -> bool:
        return self._started

    def configure(
        self,
        max_buffer_size: Optional[int] = None,
        buffer_timeout_s: Optional[int] = None,
        sweep_interval_s: Optional[int] = None,
    ) -> None:
        """Update limits; each given value is clamped to at least 1.

        A new sweep interval applies once the sweeper finishes its current wait.
        """
        if max_buffer_size is not None:
            self.max_buffer_size = max(1, int(max_buffer_size))
            if self._engine is not None:
                self._engine.max_buffer_size = self.max_buffer_size
        if buffer_timeout_s is not None:
            self.buffer_timeout_s = max(1, int(buffer_timeout_s))
            self.sweeper.timeout_s = self.buffer_timeout_s
        if sweep_interval_s is not None:
            self.sweep_interval_s = max(1, int(sweep_interval_s))
            self.sweeper.interval_s = self.sweep_interval_s

    def start(self) -> None:
        """Activate buffering and the expiry sweeper.

        Raises:
            ConfigurationError: no sink, or a sink without an encoder.
        """
        with self._lifecycle_lock:
            if self._started:
                return
            if self.sink is None:
                raise ConfigurationError("CLB-CFG-001", detail="No sink set for the conditional buffer service")
            if self.sink.encoder is None:
                raise ConfigurationError("CLB-CFG-002", detail="No encoder set on the conditional buffer sink")

            self._engine = BufferingEngine(self.store, self.sink, self.status, self.max_buffer_size)
            self._flush_policy = FlushPolicy(self.store, self.sink, self.status)
            self.sweeper.start()

            self._started = True
            self._stopped_warning_sent = False

        self.status.record(
            "CLB-LIF-001",
            f"Conditional buffer started with max_buffer_size={self.max_buffer_size}, "
            f"buffer_timeout_s={self.buffer_timeout_s}, sweep_interval_s={self.sweep_interval_s}",
        )

    def stop(self) -> None:
        """Stop the sweeper, drain all buffers without output, release the sink."""
        with self._lifecycle_lock:
            if not self._started:
                return
            self._started = False

            self.sweeper.stop(timeout=self.settings.stop_timeout_s)
            self.sweeper.force_flush_all()

            if self.sink is not None:
                try:
                    self.sink.close()
                except Exception as e:
                    self.status.record("CLB-SNK-001", "Failed to release sink", exc=e)

        self.status.record("CLB-LIF-003", "Conditional buffer stopped")

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def begin_request(self) -> str:
        """Generate a request id and activate it in the ambient context."""
        request_id = request_context.generate_request_id()
        request_context.set_request_id(request_id)
        return request_id

    def append(self, event: LogEvent, identity: Optional[RequestIdentity] | object = AMBIENT) -> bool:
        engine = self._engine
        if not self._started or engine is None:
            self._warn_not_started(event)
            return False
        if identity is AMBIENT:
            identity = request_context.get_identity()

        accepted = engine.append(event, identity)
        if accepted and not self._started and identity is not None:
            # stop() drained the store while this append was in flight
            self.store.remove(identity.request_id)
            return False
        return accepted

    def _warn_not_started(self, event: LogEvent) -> None:
        if not self._stopped_warning_sent:
            self._stopped_warning_sent = True
            self.status.record(
                "CLB-LIF-002",
                f"Conditional buffer is not started, dropping log event: {event.message}",
            )

    def end_request(self, request_id: str, identity: Optional[RequestIdentity] = None) -> int:
        """Flush *request_id* by outcome and clear the ambient context.

        The error flag comes from *identity*, or from the ambient identity when
        it belongs to the same request. That identity is closed first, so
        anything logged under it afterwards no longer lands in a buffer.
        Never raises.
        """
        try:
            if identity is None:
                identity = request_context.get_identity()
            had_error = False
            if identity is not None and identity.request_id == request_id:
                identity.close()
                had_error = identity.has_error
            return self.flush_request_logs(request_id, had_error)
        except Exception as e:
            self.status.record("CLB-FLS-001", f"Error flushing request logs for {request_id}", exc=e)
            return 0
        finally:
            request_context.clear()

    @contextmanager
    def request_scope(self) -> Iterator[str]:
        """Begin a request, and end it however the block exits.

        An exception escaping the block marks the request as failed before it
        is flushed, then propagates unchanged.
        """
        request_id = self.begin_request()
        identity = request_context.get_identity()
        try:
            yield request_id
        except BaseException:
            if identity is not None:
                identity.mark_error()
            raise
        finally:
            self.end_request(request_id, identity)

    # ------------------------------------------------------------------
    # Direct access
    # ------------------------------------------------------------------

    def flush_request_logs(self, request_id: str, had_error: bool) -> int:
        policy = self._flush_policy
        if policy is None:
            # Never started: nothing can be buffered, only drop stale entries
            self.store.remove(request_id)
            return 0
        return policy.flush(request_id, had_error)

    def cleanup_request(self, request_id: str) -> None:
        """Discard one request's buffer without writing it."""
        self.store.remove(request_id)

    def sweep_expired(self, timeout_s: Optional[float] = None) -> int:
        return self.sweeper.sweep_expired(timeout_s)

    def force_flush_all(self) -> int:
        return self.sweeper.force_flush_all()

    @property
    def buffer_count(self) -> int:
        return len(self.store)
