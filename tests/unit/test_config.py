"""Unit tests for AppSettings and sub-configs."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import (
    AdminSettings,
    AppSettings,
    BillingSettings,
    DatabaseSettings,
    GeoIPSettings,
    RedisSettings,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def with_mongo(monkeypatch):
    """Set the required MONGODB_URI so AppSettings can be instantiated."""
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
    return monkeypatch


# ---------------------------------------------------------------------------
# DatabaseSettings
# ---------------------------------------------------------------------------


class TestDatabaseSettings:
    def test_loads_mongodb_uri(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        assert DatabaseSettings().mongodb_uri == "mongodb://localhost:27017/"

    def test_default_db_name(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        monkeypatch.delenv("DB_NAME", raising=False)
        assert DatabaseSettings().db_name == "geo-redirect"

    def test_missing_mongodb_uri_raises(self, monkeypatch):
        monkeypatch.delenv("MONGODB_URI", raising=False)
        with pytest.raises(PydanticValidationError):
            DatabaseSettings()


# ---------------------------------------------------------------------------
# RedisSettings
# ---------------------------------------------------------------------------


class TestRedisSettings:
    def test_redis_uri_optional(self, monkeypatch):
        monkeypatch.delenv("REDIS_URI", raising=False)
        assert RedisSettings().redis_uri is None

    def test_redis_uri_loaded(self, monkeypatch):
        monkeypatch.setenv("REDIS_URI", "redis://localhost:6379")
        assert RedisSettings().redis_uri == "redis://localhost:6379"

    def test_default_config_cache_ttl(self, monkeypatch):
        monkeypatch.delenv("CONFIG_CACHE_TTL_SECONDS", raising=False)
        assert RedisSettings().config_cache_ttl_seconds == 60


# ---------------------------------------------------------------------------
# GeoIP / billing / admin
# ---------------------------------------------------------------------------


class TestGeoIPSettings:
    def test_defaults(self, monkeypatch):
        for var in ("GEOIP_COUNTRY_DB", "MAXMIND_LICENSE_KEY", "GEOIP_MAX_AGE_DAYS"):
            monkeypatch.delenv(var, raising=False)
        s = GeoIPSettings()
        assert s.geoip_country_db == "data/GeoLite2-Country.mmdb"
        assert s.maxmind_license_key == ""
        assert s.geoip_max_age_days == 7

    def test_download_url_has_license_placeholder(self):
        assert "{license_key}" in GeoIPSettings().geoip_download_url


class TestBillingSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OVERAGE_CURRENCY", raising=False)
        assert BillingSettings().overage_currency == "USD"


class TestAdminSettings:
    def test_token_defaults_to_disabled(self, monkeypatch):
        monkeypatch.delenv("ADMIN_API_TOKEN", raising=False)
        assert AdminSettings().admin_api_token == ""

    def test_token_loaded(self, monkeypatch):
        monkeypatch.setenv("ADMIN_API_TOKEN", "s3cret")
        assert AdminSettings().admin_api_token == "s3cret"


# ---------------------------------------------------------------------------
# AppSettings
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "env, expected",
    [("production", True), ("development", False)],
    ids=["production", "development"],
)
def test_is_production(with_mongo, env, expected):
    with_mongo.setenv("ENV", env)
    assert AppSettings().is_production is expected


class TestAppSettings:
    def test_sub_configs_populated(self, with_mongo):
        s = AppSettings()
        for attr in ("db", "redis", "geoip", "billing", "admin", "logging", "sentry"):
            assert getattr(s, attr) is not None, f"sub-config '{attr}' is None"

    def test_cors_origins_default(self, with_mongo):
        assert AppSettings().cors_origins == ["*"]

    def test_log_retention_days_default(self, with_mongo):
        with_mongo.delenv("LOG_RETENTION_DAYS", raising=False)
        assert AppSettings().log_retention_days == 30
