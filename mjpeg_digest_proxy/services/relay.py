"""Streaming relay from the upstream camera to the client.

Provides a pull-based pass-through body over the upstream response and the
streaming response that carries it, so the upstream stream is forwarded as it
arrives and released however the client side ends.
"""
from __future__ import annotations

import time

import anyio
import httpx
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from mjpeg_digest_proxy.core.errors import RelayError, StreamInterrupted
from mjpeg_digest_proxy.services.tracer import TraceScope
from mjpeg_digest_proxy.services.validator import ValidatedStream


class RelayStream:
    """Async iterator forwarding upstream chunks one at a time, unchanged.

    Finite and not restartable. ``aclose`` releases the upstream response and
    then the trace scope; it runs at most once.
    """

    def __init__(self, response: httpx.Response, scope: TraceScope):
        self._response = response
        self._scope = scope
        self._chunks = response.aiter_raw()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "RelayStream":
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._scope.outcome = "complete"
            await self.aclose()
            raise
        except httpx.HTTPError as e:
            self._scope.outcome = StreamInterrupted.outcome
            await self.aclose()
            raise StreamInterrupted(f"upstream body read failed: {type(e).__name__}: {e}") from e

        self._scope.on_chunk(len(chunk), time.monotonic() - self._scope.ctx.started_at)
        return chunk

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._response.aclose()
        finally:
            self._scope.close()


class RelayResponse(StreamingResponse):
    """StreamingResponse that always closes its RelayStream once sent or abandoned."""

    body_iterator: RelayStream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # the task may already be cancelled by a client disconnect
            with anyio.CancelScope(shield=True):
                await self.body_iterator.aclose()


def relay(validated: ValidatedStream, scope: TraceScope) -> RelayResponse:
    """Build the 200 response streaming ``validated`` to the client.

    On success the response owns both the upstream response and ``scope``.
    Raises RelayError if the response cannot be assembled; ownership then stays
    with the caller.
    """
    stream = RelayStream(validated.response, scope)
    try:
        return RelayResponse(stream, status_code=200, headers={"content-type": validated.content_type})
    except ValueError as e:  # header values must be latin-1 encodable
        raise RelayError(f"cannot build response: {e}") from e
