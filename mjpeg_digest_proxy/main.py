"""MJPEG digest proxy FastAPI application.

Creates the proxy service around one shared upstream client and request
tracer, and wires the single stream route.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from mjpeg_digest_proxy import __version__
from mjpeg_digest_proxy.api.routes import router
from mjpeg_digest_proxy.core.config import ProxyConfig
from mjpeg_digest_proxy.services.tracer import RequestTracer
from mjpeg_digest_proxy.services.upstream import UpstreamClient

log = logging.getLogger("mjpeg_digest_proxy")


def create_app(config: ProxyConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """Build the proxy app.

    The UpstreamClient (HTTP pool) and RequestTracer (id counter) are created
    here, once per process, and live on ``app.state``; the lifespan only
    closes the pool at shutdown. ``transport`` replaces the network for tests.
    """
    upstream = UpstreamClient.from_config(config, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.debug("proxying_to=%s insecure=%s", upstream.url, config.insecure)
        try:
            yield
        finally:
            await upstream.aclose()
            log.debug("end")

    app = FastAPI(
        title="MJPEG Digest Proxy",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.upstream = upstream
    app.state.tracer = RequestTracer()
    app.include_router(router)
    return app
