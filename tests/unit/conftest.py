"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv().
"""

import pytest

from config import ApiKeySettings


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def api_key_settings(monkeypatch):
    for name in ("MINUTE_LIMIT", "DAY_LIMIT", "INACTIVITY_DAYS", "GATE_STRATEGY"):
        monkeypatch.delenv(name, raising=False)
    return ApiKeySettings()
