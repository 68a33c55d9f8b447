"""Error taxonomy for the proxy pipeline.

``FetchError`` and ``ValidationError`` are upstream problems and become a 502.
``RelayError`` is a local failure while assembling the response and becomes a
500. ``StreamInterrupted`` happens after headers are sent, so it can only
truncate the client connection.
"""
from __future__ import annotations


class ProxyError(Exception):
    """Base class for every error raised by the proxy pipeline."""

    outcome = "internal_error"


class FetchError(ProxyError):
    """The upstream could not be reached or the transport failed before a response."""

    outcome = "upstream_error"


class ValidationError(ProxyError):
    """The upstream answered, but not with something we can relay."""


class BadStatus(ValidationError):
    outcome = "bad_status"

    def __init__(self, status_code: int):
        super().__init__(f"upstream returned status {status_code}")
        self.status_code = status_code


class MissingContentType(ValidationError):
    outcome = "missing_content_type"

    def __init__(self):
        super().__init__("upstream response has no content-type header")


class StreamInterrupted(ProxyError):
    """Reading the upstream body failed after the response had started."""

    outcome = "stream_error"


class RelayError(ProxyError):
    """The outbound response could not be assembled."""
