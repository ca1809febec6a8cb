"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv().

Also provides the shop-config cache double shared by the service tests.
"""

from unittest.mock import AsyncMock

import pytest

from infrastructure.cache.shop_config_cache import ShopConfigCache


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def cache():
    """ShopConfigCache double that always misses."""
    c = AsyncMock(spec=ShopConfigCache)
    c.get.return_value = None
    return c
