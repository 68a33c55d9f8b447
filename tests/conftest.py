import hashlib
from urllib.request import parse_http_list, parse_keqv_list

import anyio
import httpx
import pytest

from mjpeg_digest_proxy.core.config import ProxyConfig
from mjpeg_digest_proxy.main import create_app

BOUNDARY_CT = "multipart/x-mixed-replace; boundary=frame"
FRAMES = [
    b"--frame\r\nContent-Type: image/jpeg\r\nContent-Length: 4\r\n\r\n\xff\xd8\xff\xd9\r\n",
    b"--frame\r\nContent-Type: image/jpeg\r\nContent-Length: 6\r\n\r\n\xff\xd8\x00\x01\xff\xd9\r\n",
    b"--frame\r\nContent-Type: image/jpeg\r\nContent-Length: 4\r\n\r\n\xff\xd8\xff\xd9\r\n",
]


@pytest.fixture
def anyio_backend():
    return "asyncio"


class CameraStream(httpx.AsyncByteStream):
    """Upstream body that yields the given chunks and records when it is closed.

    ``fail_at`` raises a ReadError instead of yielding that chunk index;
    ``endless`` keeps repeating the chunks until closed.
    """

    def __init__(self, chunks, fail_at=None, endless=False):
        self.chunks = list(chunks)
        self.fail_at = fail_at
        self.endless = endless
        self.yielded = 0
        self.close_calls = 0

    async def __aiter__(self):
        while True:
            for i, chunk in enumerate(self.chunks):
                if i == self.fail_at:
                    raise httpx.ReadError("connection reset by peer")
                self.yielded += 1
                yield chunk
                await anyio.sleep(0)
            if not self.endless:
                return

    async def aclose(self):
        self.close_calls += 1


class FakeCamera:
    """Mock upstream camera behind httpx.MockTransport.

    Records every request it receives. With ``realm`` set it demands Digest
    auth for ``username``/``password`` and checks the client's answer.
    """

    def __init__(
        self,
        *,
        status_code=200,
        content_type=BOUNDARY_CT,
        chunks=FRAMES,
        realm=None,
        username="admin",
        password="secret",
        qop="auth",
        fail_at=None,
        endless=False,
    ):
        self.status_code = status_code
        self.content_type = content_type
        self.chunks = chunks
        self.realm = realm
        self.username = username
        self.password = password
        self.qop = qop
        self.fail_at = fail_at
        self.endless = endless
        self.nonce = "dcd98b7102dd2f0e8b11d0f600bfb0c093"
        self.requests: list[httpx.Request] = []
        # the auth flow resends the same Request object, so snapshot per attempt
        self.authorizations: list = []
        self.streams: list[CameraStream] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.authorizations.append(request.headers.get("authorization"))
        if self.realm is not None and not self._authorized(request):
            challenge = f'Digest realm="{self.realm}", nonce="{self.nonce}", opaque="5ccc069c403ebaf9"'
            if self.qop:
                challenge += f', qop="{self.qop}"'
            return httpx.Response(401, headers={"www-authenticate": challenge})

        stream = CameraStream(self.chunks, fail_at=self.fail_at, endless=self.endless)
        self.streams.append(stream)
        headers = {"content-type": self.content_type} if self.content_type is not None else {}
        return httpx.Response(self.status_code, headers=headers, stream=stream)

    def _authorized(self, request: httpx.Request) -> bool:
        header = request.headers.get("authorization", "")
        if not header.startswith("Digest "):
            return False
        params = parse_keqv_list(parse_http_list(header[len("Digest "):]))
        return params.get("response") == expected_response(
            self.username, self.password, self.realm, self.nonce, request.method, params
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def expected_response(username, password, realm, nonce, method, params) -> str:
    def md5(*parts):
        return hashlib.md5(":".join(parts).encode()).hexdigest()

    ha1 = md5(username, realm, password)
    ha2 = md5(method, params["uri"])
    if "qop" in params:
        return md5(ha1, nonce, params["nc"], params["cnonce"], params["qop"], ha2)
    return md5(ha1, nonce, ha2)


def make_config(**overrides) -> ProxyConfig:
    values = {"url": "http://camera.local/video.mjpg", "username": "admin", "password": "secret"}
    values.update(overrides)
    return ProxyConfig(**values)


def proxy_client(camera: FakeCamera, **config_overrides) -> httpx.AsyncClient:
    """An AsyncClient talking to a proxy app whose upstream is ``camera``."""
    app = create_app(make_config(**config_overrides), transport=camera.transport)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://proxy.local")
