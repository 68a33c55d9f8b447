"""API routes for the MJPEG proxy.

Exposes the single stream endpoint: fetch the upstream with Digest auth,
validate it, and relay its body to the caller.
"""
from __future__ import annotations

from contextlib import AsyncExitStack
from logging import getLogger

from fastapi import APIRouter, Request, Response

from mjpeg_digest_proxy.core.errors import FetchError, RelayError, ValidationError
from mjpeg_digest_proxy.services.relay import relay
from mjpeg_digest_proxy.services.tracer import RequestTracer
from mjpeg_digest_proxy.services.upstream import UpstreamClient
from mjpeg_digest_proxy.services.validator import validate

log = getLogger("mjpeg_digest_proxy.api")
router = APIRouter()


def _get_upstream_and_tracer(request: Request) -> tuple[UpstreamClient, RequestTracer]:
    """Return the app-scoped UpstreamClient and RequestTracer built by create_app."""
    return request.app.state.upstream, request.app.state.tracer


@router.get("/")
async def mjpeg(request: Request) -> Response:
    """
    Proxy the upstream MJPEG stream:
      - open a trace scope for this request
      - GET the upstream, answering a Digest challenge once
      - 502 unless it is a 200 with a content-type, else stream the body back
    """
    upstream, tracer = _get_upstream_and_tracer(request)
    ctx = tracer.context_for(request)

    async with AsyncExitStack() as stack:
        scope = stack.enter_context(tracer.open_scope(ctx))

        try:
            response = await upstream.fetch()
        except FetchError as e:
            log.error("upstream request error id=%d: %s", ctx.id, e)
            scope.outcome = e.outcome
            return Response(status_code=502)
        stack.push_async_callback(response.aclose)

        try:
            validated = validate(response)
        except ValidationError as e:
            log.warning("upstream rejected id=%d: %s", ctx.id, e)
            scope.outcome = e.outcome
            return Response(status_code=502)

        try:
            relayed = relay(validated, scope)
        except RelayError as e:
            log.error("response build failed id=%d: %s", ctx.id, e)
            scope.outcome = e.outcome
            return Response(status_code=500)

        # the response now owns the upstream body and the trace scope
        stack.pop_all()
        return relayed
