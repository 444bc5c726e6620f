"""Marketplace integration: OAuth session, token storage, inventory mapping."""

from stockpilot.integrations.inventory import ItemFetchResult, Product
from stockpilot.integrations.mercadolivre import (
    REDIRECT_URI_ERROR_PLACEHOLDER,
    MarketplaceRequestError,
    MercadoLivreClient,
    MercadoLivreError,
    SessionInvalidError,
    TokenUnavailableError,
)
from stockpilot.integrations.notifications import NotificationType, log_notifier
from stockpilot.integrations.token_store import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    Session,
)

__all__ = [
    "REDIRECT_URI_ERROR_PLACEHOLDER",
    "FileKeyValueStore",
    "ItemFetchResult",
    "KeyValueStore",
    "MarketplaceRequestError",
    "MemoryKeyValueStore",
    "MercadoLivreClient",
    "MercadoLivreError",
    "NotificationType",
    "Product",
    "Session",
    "SessionInvalidError",
    "TokenUnavailableError",
    "log_notifier",
]
