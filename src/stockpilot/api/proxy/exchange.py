# Token exchange — forwards OAuth grants to Mercado Livre with the server-held secret.
# Created: 2026-10-19
#
# Stateless: every call validates its payload, builds one form-encoded POST to
# the marketplace token endpoint and maps the outcome to (status, body).

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

ML_TOKEN_URL = "https://api.mercadolibre.com/oauth/token"

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"

MSG_CONFIG_ERROR = "Server configuration error: API credentials not found."
MSG_MISSING_PARAMS = "Missing parameters in request to the backend."
MSG_UNSUPPORTED_GRANT = "Unsupported grant_type."
MSG_INTERNAL_ERROR = "Internal server error while processing the request."
MSG_UNKNOWN_UPSTREAM = "Unknown error from Mercado Livre."


@dataclass
class ExchangeResult:
    """HTTP status and JSON body to return to the caller."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


def missing_parameters(payload: dict[str, Any]) -> bool:
    """True if the grant-specific required fields are absent."""
    grant_type = payload.get("grant_type")
    if not grant_type:
        return True
    if grant_type == GRANT_AUTHORIZATION_CODE:
        return not payload.get("code") or not payload.get("redirect_uri")
    if grant_type == GRANT_REFRESH_TOKEN:
        return not payload.get("refresh_token")
    return False


def build_form(payload: dict[str, Any], client_id: str, client_secret: str) -> dict[str, str]:
    """Form fields for the marketplace token endpoint."""
    grant_type = payload["grant_type"]
    form = {
        "grant_type": grant_type,
        "client_id": client_id,
        "client_secret": client_secret,
    }
    if grant_type == GRANT_AUTHORIZATION_CODE:
        form["code"] = payload["code"]
        form["redirect_uri"] = payload["redirect_uri"]
    elif grant_type == GRANT_REFRESH_TOKEN:
        form["refresh_token"] = payload["refresh_token"]
        # Not required for refresh, but must match the original if sent.
        if payload.get("redirect_uri"):
            form["redirect_uri"] = payload["redirect_uri"]
    return form


def upstream_error_description(data: Any) -> str:
    if isinstance(data, dict):
        return str(
            data.get("message")
            or data.get("error_description")
            or data.get("error")
            or MSG_UNKNOWN_UPSTREAM
        )
    return MSG_UNKNOWN_UPSTREAM


class TokenExchanger:
    """Exchanges authorization codes / refresh tokens for access tokens."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_url: str = ML_TOKEN_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self._http = http_client
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def exchange(self, payload: dict[str, Any]) -> ExchangeResult:
        """Validate *payload* and forward it to the marketplace."""
        if not self.configured:
            logger.error("ML app id or client secret is not configured")
            return ExchangeResult(500, {"message": MSG_CONFIG_ERROR})

        if missing_parameters(payload):
            return ExchangeResult(400, {"message": MSG_MISSING_PARAMS})

        grant_type = payload["grant_type"]
        if grant_type not in (GRANT_AUTHORIZATION_CODE, GRANT_REFRESH_TOKEN):
            return ExchangeResult(400, {"message": MSG_UNSUPPORTED_GRANT})

        form = build_form(payload, self.client_id or "", self.client_secret or "")

        try:
            logger.info("Requesting Mercado Livre token (grant_type=%s)", grant_type)
            resp = await self._post(form)
            data = resp.json()
        except Exception as e:
            logger.error("Token exchange failed internally: %s", e)
            return ExchangeResult(500, {"message": MSG_INTERNAL_ERROR, "error": str(e)})

        if not resp.is_success:
            description = upstream_error_description(data)
            logger.error(
                "Mercado Livre rejected token request: %s (status %s)",
                description,
                resp.status_code,
            )
            return ExchangeResult(
                resp.status_code,
                {
                    "message": f"Error communicating with Mercado Livre: {description}",
                    "details": data,
                },
            )

        logger.info("Token issued for user %s", data.get("user_id") if isinstance(data, dict) else "?")
        return ExchangeResult(200, data)

    async def _post(self, form: dict[str, str]) -> httpx.Response:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        if self._http is not None:
            return await self._http.post(self.token_url, data=form, headers=headers)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self.token_url, data=form, headers=headers)


def get_exchanger() -> TokenExchanger:
    """Exchanger built from current settings (read per request)."""
    from stockpilot.config import get_settings

    settings = get_settings()
    return TokenExchanger(
        client_id=settings.ml_app_id,
        client_secret=settings.ml_client_secret,
        token_url=settings.token_url,
        timeout=settings.http_timeout,
    )
