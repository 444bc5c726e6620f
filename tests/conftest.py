# Shared fixtures: isolated settings and config dir for every test.
# Created: 2026-10-19

import pytest

from stockpilot.config import get_settings

_ENV_VARS = (
    "ML_APP_ID",
    "ML_CLIENT_SECRET",
    "STOCKPILOT_ML_APP_ID",
    "STOCKPILOT_ML_CLIENT_SECRET",
    "STOCKPILOT_ML_CLIENT_ID",
    "STOCKPILOT_APP_ORIGIN",
    "STOCKPILOT_PROXY_BASE_URL",
    "STOCKPILOT_API_CORS_ALLOWED_ORIGINS",
    "STOCKPILOT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """No real env vars, no stray .env file, config dir under tmp_path."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STOCKPILOT_CONFIG_DIR", str(tmp_path / "config"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
