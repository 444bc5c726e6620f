# Health router — liveness + whether proxy credentials are configured.
# Created: 2026-10-19

from __future__ import annotations

from fastapi import APIRouter

from stockpilot.api.v1.schemas.common import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def get_health_status():
    from stockpilot.config import get_settings

    return HealthResponse(configured=get_settings().proxy_configured)
