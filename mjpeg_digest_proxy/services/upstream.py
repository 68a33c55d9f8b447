"""HTTP client wrapper for the upstream MJPEG server.

Opens the upstream stream with a Digest handshake and hands back the response
with its body still unread. Includes basic Prometheus metrics for fetch
results and header latency.
"""

from __future__ import annotations

from typing import Optional

import httpx

from mjpeg_digest_proxy.core.config import ProxyConfig
from mjpeg_digest_proxy.core.errors import FetchError
from mjpeg_digest_proxy.metrics.prometheus import UPSTREAM_FETCHES, UPSTREAM_LATENCY
from mjpeg_digest_proxy.services.digest import DigestHandshake


class UpstreamClient:
    """
    Tiny HTTP client wrapper for the upstream camera.

    Holds an httpx.AsyncClient for connection pooling. TLS verification and
    timeouts are fixed when the client is built, never per request.
    """

    def __init__(self, client: httpx.AsyncClient, url: str, username: str, password: str):
        """Create a client around a shared HTTPX AsyncClient."""
        self._client = client
        self._url = url
        self._username = username
        self._password = password

    @classmethod
    def from_config(
        cls, config: ProxyConfig, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "UpstreamClient":
        """Construct an UpstreamClient from the process configuration."""
        client = httpx.AsyncClient(
            verify=not config.insecure,
            timeout=httpx.Timeout(config.request_timeout_s),
            follow_redirects=False,
            transport=transport,
        )
        return cls(client, str(config.url), config.username, config.password.get_secret_value())

    @property
    def url(self) -> str:
        return self._url

    def handshake(self) -> DigestHandshake:
        """A fresh handshake; challenges are never carried over between requests."""
        return DigestHandshake(self._username, self._password)

    async def fetch(self, auth: Optional[DigestHandshake] = None) -> httpx.Response:
        """
        GET the upstream URL and return the response with its body unread.

        The caller owns the returned response and must close it. Any transport
        failure, including a broken Digest challenge, raises FetchError.
        """
        auth = auth or self.handshake()
        # identity keeps the body byte-identical to what the camera sends
        request = self._client.build_request("GET", self._url, headers={"accept-encoding": "identity"})
        try:
            with UPSTREAM_LATENCY.time():
                response = await self._client.send(request, auth=auth, stream=True)
        except httpx.HTTPError as e:
            UPSTREAM_FETCHES.labels(result="error").inc()
            raise FetchError(f"{type(e).__name__}: {e}") from e

        UPSTREAM_FETCHES.labels(result=str(response.status_code)).inc()
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
