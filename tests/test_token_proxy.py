# Tests for the token proxy: TokenExchanger + POST /api/v1/mercadolivre/token.
# Created: 2026-10-19

from urllib.parse import parse_qs

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from stockpilot.api.proxy.exchange import (
    MSG_CONFIG_ERROR,
    MSG_INTERNAL_ERROR,
    MSG_MISSING_PARAMS,
    MSG_UNSUPPORTED_GRANT,
    TokenExchanger,
    build_form,
    get_exchanger,
    missing_parameters,
)
from stockpilot.api.v1.token import MSG_INVALID_BODY, router

TOKEN_URL = "https://ml.test/oauth/token"

TOKEN_OK = {
    "access_token": "APP_USR-access",
    "token_type": "Bearer",
    "expires_in": 21600,
    "scope": "offline_access read write",
    "user_id": 12345,
    "refresh_token": "TG-refresh",
}


class FakeMarketplace:
    """MockTransport handler recording the form posted to the token endpoint."""

    def __init__(self, response=None):
        self.response = response or httpx.Response(200, json=TOKEN_OK)
        self.forms: list[dict[str, str]] = []
        self.headers: list[httpx.Headers] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert str(request.url) == TOKEN_URL
        self.headers.append(request.headers)
        self.forms.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _exchanger(upstream, client_id="APP", client_secret="SECRET"):
    return TokenExchanger(
        client_id=client_id,
        client_secret=client_secret,
        token_url=TOKEN_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
    )


# ===================== payload helpers =====================


class TestPayloadHelpers:
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"code": "C", "redirect_uri": "https://app/"},
            {"grant_type": "authorization_code", "code": "C"},
            {"grant_type": "authorization_code", "redirect_uri": "https://app/"},
            {"grant_type": "refresh_token"},
            {"grant_type": "refresh_token", "refresh_token": ""},
        ],
    )
    def test_missing(self, payload):
        assert missing_parameters(payload) is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"grant_type": "authorization_code", "code": "C", "redirect_uri": "https://app/"},
            {"grant_type": "refresh_token", "refresh_token": "R"},
            {"grant_type": "client_credentials"},
        ],
    )
    def test_complete(self, payload):
        assert missing_parameters(payload) is False

    def test_refresh_form_omits_redirect_when_absent(self):
        form = build_form({"grant_type": "refresh_token", "refresh_token": "R"}, "APP", "S")
        assert form == {
            "grant_type": "refresh_token",
            "client_id": "APP",
            "client_secret": "S",
            "refresh_token": "R",
        }

    def test_refresh_form_forwards_redirect(self):
        form = build_form(
            {"grant_type": "refresh_token", "refresh_token": "R", "redirect_uri": "https://app/"},
            "APP",
            "S",
        )
        assert form["redirect_uri"] == "https://app/"


# ===================== TokenExchanger =====================


class TestTokenExchanger:
    async def test_authorization_code_form(self):
        upstream = FakeMarketplace()
        result = await _exchanger(upstream).exchange(
            {"grant_type": "authorization_code", "code": "TG-code", "redirect_uri": "https://app/"}
        )

        assert result.status_code == 200
        assert result.body == TOKEN_OK
        assert upstream.forms == [
            {
                "grant_type": "authorization_code",
                "client_id": "APP",
                "client_secret": "SECRET",
                "code": "TG-code",
                "redirect_uri": "https://app/",
            }
        ]
        assert upstream.headers[0]["content-type"] == "application/x-www-form-urlencoded"
        assert upstream.headers[0]["accept"] == "application/json"

    async def test_refresh_form(self):
        upstream = FakeMarketplace()
        result = await _exchanger(upstream).exchange(
            {"grant_type": "refresh_token", "refresh_token": "TG-refresh"}
        )
        assert result.status_code == 200
        assert upstream.forms[0]["refresh_token"] == "TG-refresh"
        assert "redirect_uri" not in upstream.forms[0]

    @pytest.mark.parametrize(
        ("client_id", "client_secret"), [(None, "SECRET"), ("APP", None), ("", "")]
    )
    async def test_unconfigured(self, client_id, client_secret):
        upstream = FakeMarketplace()
        result = await _exchanger(upstream, client_id, client_secret).exchange(
            {"grant_type": "refresh_token", "refresh_token": "R"}
        )
        assert result.status_code == 500
        assert result.body == {"message": MSG_CONFIG_ERROR}
        assert upstream.forms == []

    async def test_config_checked_before_parameters(self):
        result = await _exchanger(FakeMarketplace(), client_secret=None).exchange({})
        assert result.body["message"] == MSG_CONFIG_ERROR

    async def test_missing_parameters(self):
        upstream = FakeMarketplace()
        result = await _exchanger(upstream).exchange({"grant_type": "authorization_code"})
        assert result.status_code == 400
        assert result.body == {"message": MSG_MISSING_PARAMS}
        assert upstream.forms == []

    async def test_unsupported_grant(self):
        upstream = FakeMarketplace()
        result = await _exchanger(upstream).exchange({"grant_type": "client_credentials"})
        assert result.status_code == 400
        assert result.body == {"message": MSG_UNSUPPORTED_GRANT}
        assert upstream.forms == []

    async def test_upstream_error_forwarded(self):
        error = {
            "message": "Error validating grant. Your authorization code is invalid",
            "error": "invalid_grant",
            "status": 400,
        }
        result = await _exchanger(FakeMarketplace(httpx.Response(400, json=error))).exchange(
            {"grant_type": "refresh_token", "refresh_token": "R"}
        )
        assert result.status_code == 400
        assert result.body == {
            "message": "Error communicating with Mercado Livre: "
            "Error validating grant. Your authorization code is invalid",
            "details": error,
        }

    async def test_upstream_error_without_message(self):
        error = {"error": "invalid_client", "error_description": "bad secret"}
        result = await _exchanger(FakeMarketplace(httpx.Response(401, json=error))).exchange(
            {"grant_type": "refresh_token", "refresh_token": "R"}
        )
        assert result.status_code == 401
        assert result.body["message"] == "Error communicating with Mercado Livre: bad secret"

    async def test_upstream_error_unknown(self):
        result = await _exchanger(FakeMarketplace(httpx.Response(403, json={}))).exchange(
            {"grant_type": "refresh_token", "refresh_token": "R"}
        )
        assert result.status_code == 403
        assert result.body["message"].endswith("Unknown error from Mercado Livre.")

    async def test_transport_failure(self):
        upstream = FakeMarketplace(httpx.ConnectError("dns failure"))
        result = await _exchanger(upstream).exchange(
            {"grant_type": "refresh_token", "refresh_token": "R"}
        )
        assert result.status_code == 500
        assert result.body == {"message": MSG_INTERNAL_ERROR, "error": "dns failure"}

    async def test_non_json_upstream_body(self):
        upstream = FakeMarketplace(httpx.Response(502, text="<html>gateway</html>"))
        result = await _exchanger(upstream).exchange(
            {"grant_type": "refresh_token", "refresh_token": "R"}
        )
        assert result.status_code == 500
        assert result.body["message"] == MSG_INTERNAL_ERROR


# ===================== Router =====================


@pytest.fixture
def upstream():
    return FakeMarketplace()


@pytest.fixture
def test_app(upstream):
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    app.dependency_overrides[get_exchanger] = lambda: _exchanger(upstream)
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


URL = "/api/v1/mercadolivre/token"


class TestTokenEndpoint:
    def test_authorization_code_passthrough(self, client, upstream):
        resp = client.post(
            URL,
            json={
                "grant_type": "authorization_code",
                "code": "TG-code",
                "redirect_uri": "https://app/",
            },
        )
        assert resp.status_code == 200
        assert resp.json() == TOKEN_OK
        assert upstream.forms[0]["client_secret"] == "SECRET"

    def test_unknown_fields_ignored(self, client, upstream):
        resp = client.post(
            URL,
            json={"grant_type": "refresh_token", "refresh_token": "R", "client_id": "spoofed"},
        )
        assert resp.status_code == 200
        assert upstream.forms[0]["client_id"] == "APP"

    def test_get_not_allowed(self, client):
        assert client.get(URL).status_code == 405

    def test_invalid_json(self, client, upstream):
        resp = client.post(URL, content=b"not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json() == {"message": MSG_INVALID_BODY}
        assert upstream.forms == []

    def test_json_array_rejected(self, client):
        resp = client.post(URL, json=["grant_type"])
        assert resp.status_code == 400
        assert resp.json() == {"message": MSG_INVALID_BODY}

    def test_numeric_code_forwarded_as_text(self, client, upstream):
        resp = client.post(
            URL,
            json={
                "grant_type": "authorization_code",
                "code": 12345,
                "redirect_uri": "https://app/",
            },
        )
        assert resp.status_code == 200
        assert upstream.forms[0]["code"] == "12345"

    def test_non_scalar_field_counts_as_missing(self, client, upstream):
        resp = client.post(
            URL,
            json={"grant_type": "refresh_token", "refresh_token": {"value": "R"}},
        )
        assert resp.status_code == 400
        assert resp.json() == {"message": MSG_MISSING_PARAMS}
        assert upstream.forms == []

    def test_missing_parameters(self, client):
        resp = client.post(URL, json={"grant_type": "authorization_code", "code": "C"})
        assert resp.status_code == 400
        assert resp.json() == {"message": MSG_MISSING_PARAMS}

    def test_upstream_status_forwarded(self, client, upstream):
        upstream.response = httpx.Response(400, json={"message": "invalid_grant"})
        resp = client.post(URL, json={"grant_type": "refresh_token", "refresh_token": "R"})
        assert resp.status_code == 400
        assert resp.json()["details"] == {"message": "invalid_grant"}

    def test_transport_error(self, client, upstream):
        upstream.response = httpx.ReadTimeout("timed out")
        resp = client.post(URL, json={"grant_type": "refresh_token", "refresh_token": "R"})
        assert resp.status_code == 500
        assert resp.json() == {"message": MSG_INTERNAL_ERROR, "error": "timed out"}


class TestExchangerFromSettings:
    def test_reads_aliased_env(self, monkeypatch):
        monkeypatch.setenv("ML_APP_ID", "env-app")
        monkeypatch.setenv("ML_CLIENT_SECRET", "env-secret")
        exchanger = get_exchanger()
        assert exchanger.client_id == "env-app"
        assert exchanger.client_secret == "env-secret"
        assert exchanger.configured is True

    def test_unconfigured_endpoint_returns_500(self):
        app = FastAPI()
        app.include_router(router, prefix="/api/v1")
        resp = TestClient(app).post(
            URL, json={"grant_type": "refresh_token", "refresh_token": "R"}
        )
        assert resp.status_code == 500
        assert resp.json() == {"message": MSG_CONFIG_ERROR}
