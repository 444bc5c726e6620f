# Token proxy router — exchange codes / refresh tokens without exposing the secret.
# Created: 2026-10-19

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from stockpilot.api.proxy.exchange import TokenExchanger, get_exchanger
from stockpilot.api.v1.schemas.token import TokenErrorResponse, TokenRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Token"])

MSG_INVALID_BODY = "Request body is invalid or not JSON."


@router.post(
    "/mercadolivre/token",
    response_model=TokenResponse,
    responses={
        400: {"model": TokenErrorResponse},
        500: {"model": TokenErrorResponse},
    },
)
async def token_exchange(
    request: Request,
    exchanger: TokenExchanger = Depends(get_exchanger),
):
    """Exchange an authorization code or refresh token for an access token."""
    try:
        raw = await request.json()
        body = TokenRequest.model_validate(raw)
    except (ValueError, ValidationError) as e:
        logger.warning("Rejected token request with unparsable body: %s", e)
        return JSONResponse(status_code=400, content={"message": MSG_INVALID_BODY})

    result = await exchanger.exchange(body.model_dump(exclude_none=True))
    return JSONResponse(status_code=result.status_code, content=result.body)
