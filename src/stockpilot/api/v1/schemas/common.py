# Common API response schemas.
# Created: 2026-10-19

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Proxy liveness and configuration state."""

    status: str = "ok"
    configured: bool = False
