"""Pydantic models used by the proxy pipeline."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RequestContext(BaseModel):
    """Identity of one inbound request, owned by the task handling it."""

    model_config = ConfigDict(frozen=True)

    id: int
    client: str
    method: str
    path: str
    started_at: float  # time.monotonic() when the request was accepted
