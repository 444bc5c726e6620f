# Token Store — session value + string key-value persistence.
# Created: 2026-10-19
#
# The client mirrors its OAuth session into three string keys. Storage is an
# opaque key-value store; the file-backed one keeps a single JSON object at
# ~/.stockpilot/session.json (chmod 0600).

from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "ml_access_token"
REFRESH_TOKEN_KEY = "ml_refresh_token"
USER_ID_KEY = "ml_user_id"


class KeyValueStore(Protocol):
    """String key-value store. A missing key means "not set"."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """In-memory store (tests, ephemeral runs)."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def as_dict(self) -> dict[str, str]:
        return dict(self._data)


def _default_store_path() -> Path:
    from stockpilot.config import get_config_dir

    return get_config_dir() / "session.json"


class FileKeyValueStore:
    """JSON-file key-value store. Every write rewrites the whole file.

    The file is chmod 0600 (owner-only read/write). A corrupt file is
    logged and treated as empty.
    """

    def __init__(self, path: Path | None = None):
        self._path = path

    @property
    def path(self) -> Path:
        if self._path is not None:
            return self._path
        return _default_store_path()

    def _read(self) -> dict[str, str]:
        path = self.path
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read session store %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed session store %s", path)
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: dict[str, str]) -> None:
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


@dataclass(frozen=True)
class Session:
    """OAuth session held by the marketplace client.

    Immutable: every update produces a new value.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def refreshed(
        self,
        access_token: str,
        refresh_token: str | None = None,
        user_id: str | None = None,
    ) -> Session:
        """New session after a refresh. Refresh token and user id are kept unless reissued."""
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            user_id=user_id or self.user_id,
        )


def load_session(store: KeyValueStore) -> Session:
    """Read the session from *store*; missing keys stay None."""
    return Session(
        access_token=store.get(ACCESS_TOKEN_KEY) or None,
        refresh_token=store.get(REFRESH_TOKEN_KEY) or None,
        user_id=store.get(USER_ID_KEY) or None,
    )


def save_session(store: KeyValueStore, session: Session) -> None:
    """Mirror *session* into *store*. None fields are removed."""
    for key, value in (
        (ACCESS_TOKEN_KEY, session.access_token),
        (REFRESH_TOKEN_KEY, session.refresh_token),
        (USER_ID_KEY, session.user_id),
    ):
        if value:
            store.set(key, value)
        else:
            store.remove(key)
