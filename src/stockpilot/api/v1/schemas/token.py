# Token proxy schemas.
# Created: 2026-10-19

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class TokenRequest(BaseModel):
    """Authorization-code or refresh-token exchange request.

    Grant-specific requirements are checked by the exchanger, not here, so a
    missing field yields the "missing parameters" error rather than a
    validation error.
    """

    model_config = ConfigDict(extra="ignore")

    grant_type: str | None = None
    code: str | None = None
    redirect_uri: str | None = None
    refresh_token: str | None = None

    @field_validator("grant_type", "code", "redirect_uri", "refresh_token", mode="before")
    @classmethod
    def _scalar_to_str(cls, v: Any) -> str | None:
        # Numbers are forwarded as text; anything else counts as absent.
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return None


class TokenResponse(BaseModel):
    """Mercado Livre token response (forwarded unchanged)."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None
    user_id: int | str | None = None
    refresh_token: str | None = None


class TokenErrorResponse(BaseModel):
    """Error envelope returned by the proxy."""

    message: str
    details: dict | None = None
    error: str | None = None
