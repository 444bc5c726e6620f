# Mercado Livre Client — OAuth session lifecycle + seller listings.
# Created: 2026-10-19
#
# Tokens are exchanged through the StockPilot token proxy so the client secret
# never leaves the server. Authenticated calls go through _request(), which
# refreshes once on a 401 and retries the call once.

from __future__ import annotations

import asyncio
import json
import logging
import webbrowser
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

import httpx

from stockpilot.integrations.inventory import ItemFetchResult, Product
from stockpilot.integrations.notifications import NotificationType, Notifier, log_notifier
from stockpilot.integrations.token_store import (
    FileKeyValueStore,
    KeyValueStore,
    Session,
    load_session,
    save_session,
)

logger = logging.getLogger(__name__)

AUTH_URL = "https://auth.mercadolivre.com.br/authorization"
API_BASE = "https://api.mercadolibre.com"
DEFAULT_PROXY_URL = "http://localhost:3001/api/v1/mercadolivre/token"

# Returned instead of a redirect URI when the origin cannot be trusted.
REDIRECT_URI_ERROR_PLACEHOLDER = "ERROR_COPY_YOUR_APP_HTTPS_URL_HERE"

SEARCH_LIMIT = 50
MAX_PRODUCTS = 15


class MercadoLivreError(Exception):
    """Base error for marketplace client failures."""


class TokenUnavailableError(MercadoLivreError):
    """No access token is held."""


class SessionInvalidError(MercadoLivreError):
    """A 401 could not be recovered by refreshing the session."""


class MarketplaceRequestError(MercadoLivreError):
    """The marketplace answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _error_message(data: Any, default: str) -> str:
    """Most specific error text from a proxy error body.

    Priority: details.error_description, error, message, then *default*.
    """
    if not isinstance(data, dict):
        return default
    details = data.get("details")
    if isinstance(details, dict) and details.get("error_description"):
        return str(details["error_description"])
    return str(data.get("error") or data.get("message") or default)


def _open_in_browser(url: str) -> bool:
    return webbrowser.open(url, new=2)


def _mask(token: str | None) -> str:
    if not token:
        return "-"
    return f"{token[:6]}…" if len(token) > 6 else "…"


class MercadoLivreClient:
    """OAuth2 client for the Mercado Livre seller API.

    Session state (access token, refresh token, user id) is loaded from the
    key-value store on construction and mirrored back on every change. All
    user-facing outcomes are reported through *notify*; auth operations
    return booleans and never raise.
    """

    def __init__(
        self,
        client_id: str | None,
        notify: Notifier = log_notifier,
        store: KeyValueStore | None = None,
        origin: str | None = None,
        proxy_url: str = DEFAULT_PROXY_URL,
        api_base: str = API_BASE,
        auth_url: str = AUTH_URL,
        http_client: httpx.AsyncClient | None = None,
        open_browser: Callable[[str], bool] | None = None,
        timeout: float = 15.0,
    ):
        self.client_id = client_id
        self._notify = notify
        self._store = store if store is not None else FileKeyValueStore()
        self._origin = origin
        self._proxy_url = proxy_url
        self._api_base = api_base.rstrip("/")
        self._auth_url = auth_url
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._open_browser = open_browser or _open_in_browser
        self._session = load_session(self._store)
        # Serialises 401 recovery so concurrent requests share one refresh.
        self._refresh_lock = asyncio.Lock()
        logger.debug("Client created (client_id=%s)", client_id)

    @classmethod
    def from_settings(
        cls,
        notify: Notifier = log_notifier,
        store: KeyValueStore | None = None,
        settings: Any = None,
        **kwargs: Any,
    ) -> MercadoLivreClient:
        """Create a client from StockPilot settings."""
        if settings is None:
            from stockpilot.config import get_settings

            settings = get_settings()
        return cls(
            client_id=settings.client_id,
            notify=notify,
            store=store,
            origin=settings.app_origin,
            proxy_url=settings.token_proxy_url,
            api_base=settings.api_base_url,
            auth_url=settings.auth_url,
            timeout=settings.http_timeout,
            **kwargs,
        )

    async def __aenter__(self) -> MercadoLivreClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    def _set_session(self, session: Session) -> None:
        self._session = session
        save_session(self._store, session)

    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    def get_client_id(self) -> str | None:
        return self.client_id

    def logout(self) -> None:
        """Forget the session in memory and in storage. No network call."""
        self._set_session(Session())
        logger.info("Session cleared")

    # ------------------------------------------------------------------
    # Authorization flow
    # ------------------------------------------------------------------

    def get_redirect_uri(self) -> str:
        """Callback URL derived from the app origin.

        Returns REDIRECT_URI_ERROR_PLACEHOLDER when the origin is missing,
        "null" or a blob: origin. Plain http is kept only for localhost.
        """
        origin = self._origin
        if not origin or origin == "null" or origin.startswith("blob:"):
            logger.error(
                "Invalid origin %r; configure the redirect URI manually in Mercado Livre "
                "using the app's public https URL",
                origin,
            )
            return REDIRECT_URI_ERROR_PLACEHOLDER

        redirect_uri = origin if origin.endswith("/") else origin + "/"
        if not origin.startswith("http://localhost") and redirect_uri.startswith("http:"):
            redirect_uri = "https:" + redirect_uri[len("http:") :]

        logger.debug("Redirect URI: %s", redirect_uri)
        return redirect_uri

    def authenticate(self) -> str | None:
        """Open the marketplace authorization page.

        Returns the authorization URL, or None if the flow could not start
        or the browser could not be opened.
        """
        if not self.client_id:
            logger.error("Client ID is missing")
            self._notify("Client ID missing. Check the configuration.", NotificationType.ERROR)
            return None

        redirect_uri = self.get_redirect_uri()
        if redirect_uri == REDIRECT_URI_ERROR_PLACEHOLDER:
            self._notify(
                "CRITICAL: the redirect URI could not be determined. Configure the app's "
                "public URL as the redirect URI in Mercado Livre.",
                NotificationType.ERROR,
            )
            return None

        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
        }
        auth_url = f"{self._auth_url}?{urlencode(params)}"
        logger.info("Opening authorization URL: %s", auth_url)
        self._notify("Redirecting to Mercado Livre for authorization...", NotificationType.INFO)

        try:
            opened = self._open_browser(auth_url)
        except Exception as e:
            logger.error("Could not open the authorization window: %s", e)
            self._notify(f"Error opening authentication window: {e}", NotificationType.ERROR)
            return None

        if not opened:
            logger.warning("Authorization window may have been blocked")
            self._notify(
                "The authentication window may have been blocked. Open the URL manually.",
                NotificationType.WARNING,
            )
        return auth_url

    async def _exchange(self, payload: dict[str, Any]) -> tuple[bool, Any]:
        """POST *payload* to the token proxy. Returns (ok, parsed body)."""
        resp = await self._http.post(self._proxy_url, json=payload)
        data = resp.json()
        ok = resp.is_success and isinstance(data, dict) and bool(data.get("access_token"))
        return ok, data

    async def handle_callback(self, code: str) -> bool:
        """Exchange an authorization code for a session."""
        redirect_uri = self.get_redirect_uri()
        if redirect_uri == REDIRECT_URI_ERROR_PLACEHOLDER:
            logger.error("Callback received but the redirect URI is invalid")
            self._notify(
                "CRITICAL: invalid redirect URI in callback. Authentication will fail.",
                NotificationType.ERROR,
            )
            return False

        try:
            ok, data = await self._exchange(
                {"code": code, "redirect_uri": redirect_uri, "grant_type": "authorization_code"}
            )
        except Exception as e:
            logger.error("Token proxy unreachable during callback: %s", e)
            self._notify(f"Communication error: {e}", NotificationType.ERROR)
            return False

        if not ok:
            message = _error_message(data, "Authentication via backend failed.")
            logger.error("Authorization code exchange failed: %s", data)
            self._notify(f"Authentication error: {message}", NotificationType.ERROR)
            return False

        user_id = data.get("user_id")
        self._set_session(
            Session(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                user_id=str(user_id) if user_id is not None else None,
            )
        )
        logger.info("Connected (user_id=%s)", self._session.user_id)
        self._notify("Connected to Mercado Livre!", NotificationType.SUCCESS)
        return True

    async def refresh_token_flow(self) -> bool:
        """Trade the refresh token for a new access token.

        Any failure clears the session.
        """
        if not self._session.refresh_token:
            self._notify("Session expired. Refresh token not found.", NotificationType.ERROR)
            self.logout()
            return False

        redirect_uri = self.get_redirect_uri()
        if redirect_uri == REDIRECT_URI_ERROR_PLACEHOLDER:
            self._notify("CRITICAL: invalid redirect URI during refresh.", NotificationType.ERROR)
            self.logout()
            return False

        logger.info("Refreshing access token (refresh=%s)", _mask(self._session.refresh_token))
        try:
            ok, data = await self._exchange(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": self._session.refresh_token,
                    "client_id": self.client_id,
                    "redirect_uri": redirect_uri,
                }
            )
        except Exception as e:
            logger.error("Token refresh failed: %s", e)
            self._notify(f"Error refreshing session: {e}", NotificationType.ERROR)
            self.logout()
            return False

        if not ok:
            message = _error_message(data, "Failed to refresh token.")
            logger.error("Token refresh rejected: %s", data)
            self._notify(
                f"Error refreshing session: {message}. Please reconnect.",
                NotificationType.ERROR,
            )
            self.logout()
            return False

        user_id = data.get("user_id")
        self._set_session(
            self._session.refreshed(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                user_id=str(user_id) if user_id is not None else None,
            )
        )
        self._notify("Session refreshed.", NotificationType.SUCCESS)
        return True

    # ------------------------------------------------------------------
    # Authenticated requests
    # ------------------------------------------------------------------

    async def _send(
        self, method: str, url: str, headers: dict[str, str] | None = None, **kwargs: Any
    ) -> httpx.Response:
        merged = {
            **(headers or {}),
            "Authorization": f"Bearer {self._session.access_token}",
            "Accept": "application/json",
        }
        return await self._http.request(method, url, headers=merged, **kwargs)

    @staticmethod
    def _describe_error(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return f"HTTP error {resp.status_code}"
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return json.dumps(data)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Authenticated request with one refresh-and-retry on 401.

        Raises:
            TokenUnavailableError: no access token is held.
            SessionInvalidError: a 401 and the refresh failed.
            MarketplaceRequestError: the (possibly retried) response is not 2xx.
        """
        if not self._session.access_token:
            self._notify("Access token not available. Try reconnecting.", NotificationType.ERROR)
            raise TokenUnavailableError("Access token not available.")

        rejected_token = self._session.access_token
        resp = await self._send(method, url, **kwargs)

        if resp.status_code == 401:
            async with self._refresh_lock:
                # Another request may already have renewed the token this one used.
                if self._session.access_token == rejected_token:
                    self._notify("Session expired. Trying to renew...", NotificationType.INFO)
                    if not await self.refresh_token_flow():
                        raise SessionInvalidError("Failed to refresh token. Please log in again.")
                elif not self._session.access_token:
                    raise SessionInvalidError("Session was cleared. Please log in again.")
                else:
                    logger.debug("Access token already renewed; retrying")
            resp = await self._send(method, url, **kwargs)

        if not resp.is_success:
            raise MarketplaceRequestError(self._describe_error(resp), status_code=resp.status_code)
        return resp.json()

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def _fetch_item(self, item_id: str) -> ItemFetchResult:
        try:
            item = await self._request("GET", f"{self._api_base}/items/{item_id}")
            return ItemFetchResult(item_id=item_id, product=Product.from_listing(item))
        except Exception as e:
            logger.error("Failed to fetch product %s: %s", item_id, e)
            return ItemFetchResult(item_id=item_id, error=str(e))

    async def get_my_products(self) -> list[Product]:
        """Most recent listings of the authenticated seller, as Products.

        Never raises; failures are notified and yield an empty or partial list.
        """
        if not self._session.user_id:
            self._notify("User ID not found. Trying to renew session...", NotificationType.INFO)
            refreshed = await self.refresh_token_flow()
            if not refreshed or not self._session.user_id:
                self._notify("Could not get User ID. Please reconnect.", NotificationType.ERROR)
                return []

        try:
            search = await self._request(
                "GET",
                f"{self._api_base}/users/{self._session.user_id}/items/search",
                params={"limit": SEARCH_LIMIT, "orders": "start_time_desc"},
            )
            item_ids: list[str] = search.get("results") or []
            if not item_ids:
                return []

            results = await asyncio.gather(
                *(self._fetch_item(item_id) for item_id in item_ids[:MAX_PRODUCTS])
            )
        except Exception as e:
            logger.error("Product search failed: %s", e)
            self._notify(f"General error fetching products: {e}.", NotificationType.ERROR)
            return []

        products = [r.product for r in results if r.product is not None]
        failed = [r.item_id for r in results if not r.ok]
        if failed:
            logger.warning("%d of %d product lookups failed", len(failed), len(results))
        if not products:
            self._notify(
                "Could not load product details. Some requests may have failed.",
                NotificationType.ERROR,
            )
        return products
