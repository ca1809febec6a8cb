"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Sub-configs are composed into AppSettings by a model_validator so every
group reads from the same env/dotenv source.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "geo-redirect"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis every storefront request reads MongoDB directly
    redis_uri: Optional[str] = None
    config_cache_ttl_seconds: int = 60


class GeoIPSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    geoip_country_db: str = "data/GeoLite2-Country.mmdb"

    # Auto-update is skipped when no license key is configured
    maxmind_license_key: str = ""
    geoip_max_age_days: int = 7
    geoip_download_url: str = (
        "https://download.maxmind.com/app/geoip_download"
        "?edition_id=GeoLite2-Country&license_key={license_key}&suffix=tar.gz"
    )


class BillingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    shopify_api_version: str = "2025-01"
    overage_currency: str = "USD"


class AdminSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Empty token disables the admin API entirely
    admin_api_token: str = ""


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "geo-redirect"

    # Storefront scripts call us from every shop domain
    cors_origins: list[str] = ["*"]

    # Visitor logs older than this are purged by the retention sweep
    log_retention_days: int = 30

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    geoip: Optional[GeoIPSettings] = None
    billing: Optional[BillingSettings] = None
    admin: Optional[AdminSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.geoip is None:
            self.geoip = GeoIPSettings()
        if self.billing is None:
            self.billing = BillingSettings()
        if self.admin is None:
            self.admin = AdminSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
