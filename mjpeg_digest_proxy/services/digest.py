"""HTTP Digest handshake for the upstream client.

The handshake is a small explicit state machine plugged into httpx as an
``httpx.Auth`` flow:

    UNAUTHENTICATED --401 + Digest challenge--> CHALLENGED --response--> AUTHENTICATED

The first request goes out without credentials. A ``401`` carrying a Digest
challenge is answered exactly once; any other response ends the flow and is
handed back to the caller unchanged. One instance serves one request.

Challenge parsing and response hashing are done by a fresh ``httpx.DigestAuth``
per handshake, so no nonce is ever carried over to another request.
"""
from __future__ import annotations

from enum import Enum
from typing import Generator

import httpx


class HandshakeState(str, Enum):
    """Where a request is in the Digest handshake."""
    UNAUTHENTICATED = "unauthenticated"
    CHALLENGED = "challenged"
    AUTHENTICATED = "authenticated"


class DigestHandshake(httpx.Auth):
    """Single-request Digest state machine.

    ``attempts`` counts the requests this handshake put on the wire: 1 when the
    upstream did not challenge, 2 when it did.
    """

    def __init__(self, username: str, password: str):
        self._username = username
        self._password = password
        self.state = HandshakeState.UNAUTHENTICATED
        self.attempts = 0

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self.attempts:
            raise RuntimeError("DigestHandshake instances are single-use")

        flow = httpx.DigestAuth(self._username, self._password).auth_flow(request)
        request = next(flow)
        while True:
            self.attempts += 1
            response = yield request
            if self.state is HandshakeState.CHALLENGED:
                self.state = HandshakeState.AUTHENTICATED
            try:
                request = flow.send(response)
            except StopIteration:
                return
            except (KeyError, NotImplementedError) as e:
                # httpx lets unknown algorithms and auth-int-only challenges escape as-is
                raise httpx.ProtocolError(f"Unsupported Digest challenge: {e}", request=request) from e
            self.state = HandshakeState.CHALLENGED
