"""Per-request lifecycle tracing.

Every request gets an id from a process-wide counter and a ``TraceScope``
that logs once when it opens and exactly once when it is released, however
the request ends: drained stream, client abort, upstream error or an early
error response.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from fastapi import Request

from mjpeg_digest_proxy.metrics.prometheus import ACTIVE_STREAMS, PROXY_REQUESTS, RELAYED_BYTES
from mjpeg_digest_proxy.models.schemas import RequestContext

log = logging.getLogger("mjpeg_digest_proxy.trace")


class RequestIdCounter:
    """Thread-safe, strictly increasing request ids starting at ``start``."""

    def __init__(self, start: int = 1):
        self._lock = threading.Lock()
        self._next = start

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value


class TraceScope:
    """Observability scope for one request.

    ``outcome`` may be updated while the request runs; its value at release
    time is what gets logged and counted.
    """

    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.outcome = "aborted"
        self.chunks = 0
        self.bytes = 0
        self._closed = False
        ACTIVE_STREAMS.inc()
        log.info(
            "request started id=%d client=%s method=%s path=%s",
            ctx.id, ctx.client, ctx.method, ctx.path,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def elapsed(self) -> float:
        return time.monotonic() - self.ctx.started_at

    def on_chunk(self, size: int, elapsed: float) -> None:
        self.chunks += 1
        self.bytes += size
        RELAYED_BYTES.inc(size)
        if log.isEnabledFor(logging.DEBUG):
            log.debug("chunk id=%d size_bytes=%d latency=%.6fs", self.ctx.id, size, elapsed)

    def close(self, outcome: Optional[str] = None) -> None:
        """Emit the completion record. Only the first call has any effect."""
        if self._closed:
            return
        self._closed = True
        if outcome is not None:
            self.outcome = outcome
        ACTIVE_STREAMS.dec()
        PROXY_REQUESTS.labels(outcome=self.outcome).inc()
        log.info(
            "stream ended id=%d outcome=%s chunks=%d bytes=%d duration=%.3fs",
            self.ctx.id, self.outcome, self.chunks, self.bytes, self.elapsed(),
        )

    def __enter__(self) -> "TraceScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if isinstance(exc, Exception) and self.outcome == "aborted":
            self.outcome = getattr(exc, "outcome", "internal_error")
        self.close()


class RequestTracer:
    """Hands out request contexts and opens their trace scopes."""

    def __init__(self, counter: Optional[RequestIdCounter] = None):
        self._counter = counter or RequestIdCounter()

    def context_for(self, request: Request) -> RequestContext:
        client = f"{request.client.host}:{request.client.port}" if request.client else "unknown"
        return RequestContext(
            id=self._counter.next(),
            client=client,
            method=request.method,
            path=request.url.path,
            started_at=time.monotonic(),
        )

    def open_scope(self, ctx: RequestContext) -> TraceScope:
        return TraceScope(ctx)
