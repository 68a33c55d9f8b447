"""Decide whether an upstream response can be relayed."""
from __future__ import annotations

from dataclasses import dataclass

import httpx

from mjpeg_digest_proxy.core.errors import BadStatus, MissingContentType


@dataclass(frozen=True)
class ValidatedStream:
    """An upstream 200 with a usable content-type and an unread body."""

    content_type: str
    response: httpx.Response


def validate(response: httpx.Response) -> ValidatedStream:
    """Accept only ``200 OK`` responses that name their content-type.

    Anything else, including a 401 left over after the Digest retry, is a
    BadStatus. The body is not touched; on failure the caller closes it.
    """
    if response.status_code != 200:
        raise BadStatus(response.status_code)

    # multipart/x-mixed-replace needs its boundary parameter; never guess it
    content_type = response.headers.get("content-type", "").strip()
    if not content_type:
        raise MissingContentType()

    return ValidatedStream(content_type, response)
