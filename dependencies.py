"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Process-wide objects (database, Redis, GeoIP
reader, HTTP client, billing provider, retention state) are created once in
the app lifespan and read from app.state; repositories and services are
cheap per-request wrappers around them.

Tests replace any provider through ``app.dependency_overrides``.
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, Header, Request

from config import AppSettings
from errors import AuthenticationError, ForbiddenError
from infrastructure.billing.protocol import BillingProvider
from infrastructure.cache.shop_config_cache import ShopConfigCache
from infrastructure.geoip import GeoIPService
from repositories.analytics_repository import (
    CountryStatsRepository,
    RuleStatsRepository,
    VisitorLogRepository,
)
from repositories.rule_repository import RuleRepository
from repositories.session_repository import SessionRepository
from repositories.settings_repository import SettingsRepository
from repositories.usage_repository import UsageRepository
from services.analytics_service import AnalyticsService
from services.billing_service import BillingService
from services.log_retention import LogRetention
from services.rule_service import RuleService
from services.settings_service import SettingsService
from services.shop_service import ShopService
from services.storefront_service import StorefrontService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


async def get_redis(request: Request):
    """Return the async Redis client from app.state (may be None if not configured)."""
    return request.app.state.redis


def get_geoip(request: Request) -> GeoIPService:
    return request.app.state.geoip


def get_billing_provider(request: Request) -> BillingProvider:
    return request.app.state.billing_provider


def get_log_retention(request: Request) -> LogRetention:
    return request.app.state.log_retention


def get_shop_config_cache(
    redis=Depends(get_redis), settings: AppSettings = Depends(get_settings)
) -> ShopConfigCache:
    return ShopConfigCache(redis, ttl_seconds=settings.redis.config_cache_ttl_seconds)


# ── Repositories ─────────────────────────────────────────────────────────────


def get_rule_repo(db=Depends(get_db)) -> RuleRepository:
    return RuleRepository(db)


def get_settings_repo(db=Depends(get_db)) -> SettingsRepository:
    return SettingsRepository(db)


def get_usage_repo(db=Depends(get_db)) -> UsageRepository:
    return UsageRepository(db)


def get_country_stats_repo(db=Depends(get_db)) -> CountryStatsRepository:
    return CountryStatsRepository(db)


def get_rule_stats_repo(db=Depends(get_db)) -> RuleStatsRepository:
    return RuleStatsRepository(db)


def get_visitor_log_repo(db=Depends(get_db)) -> VisitorLogRepository:
    return VisitorLogRepository(db)


def get_session_repo(db=Depends(get_db)) -> SessionRepository:
    return SessionRepository(db)


# ── Services ─────────────────────────────────────────────────────────────────


def get_storefront_service(
    rules: RuleRepository = Depends(get_rule_repo),
    settings: SettingsRepository = Depends(get_settings_repo),
    usage: UsageRepository = Depends(get_usage_repo),
    cache: ShopConfigCache = Depends(get_shop_config_cache),
    geoip: GeoIPService = Depends(get_geoip),
) -> StorefrontService:
    return StorefrontService(rules, settings, usage, cache, geoip)


def get_analytics_service(
    settings: SettingsRepository = Depends(get_settings_repo),
    country_stats: CountryStatsRepository = Depends(get_country_stats_repo),
    rule_stats: RuleStatsRepository = Depends(get_rule_stats_repo),
    visitor_logs: VisitorLogRepository = Depends(get_visitor_log_repo),
    usage: UsageRepository = Depends(get_usage_repo),
) -> AnalyticsService:
    return AnalyticsService(settings, country_stats, rule_stats, visitor_logs, usage)


def get_rule_service(
    rules: RuleRepository = Depends(get_rule_repo),
    cache: ShopConfigCache = Depends(get_shop_config_cache),
) -> RuleService:
    return RuleService(rules, cache)


def get_settings_service(
    settings: SettingsRepository = Depends(get_settings_repo),
    usage: UsageRepository = Depends(get_usage_repo),
    cache: ShopConfigCache = Depends(get_shop_config_cache),
) -> SettingsService:
    return SettingsService(settings, usage, cache)


def get_billing_service(
    settings: SettingsRepository = Depends(get_settings_repo),
    usage: UsageRepository = Depends(get_usage_repo),
    provider: BillingProvider = Depends(get_billing_provider),
    app_settings: AppSettings = Depends(get_settings),
) -> BillingService:
    return BillingService(
        settings, usage, provider, currency=app_settings.billing.overage_currency
    )


def get_shop_service(
    db=Depends(get_db),
    cache: ShopConfigCache = Depends(get_shop_config_cache),
) -> ShopService:
    repositories = [
        SettingsRepository(db),
        RuleRepository(db),
        CountryStatsRepository(db),
        RuleStatsRepository(db),
        UsageRepository(db),
        VisitorLogRepository(db),
        SessionRepository(db),
    ]
    return ShopService(repositories, cache)


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_admin(
    x_admin_token: Optional[str] = Header(default=None),
    settings: AppSettings = Depends(get_settings),
) -> None:
    """Guard for the admin API: constant-time check of ``X-Admin-Token``."""
    expected = settings.admin.admin_api_token
    if not expected:
        raise ForbiddenError("Admin API is disabled")
    if not x_admin_token or not secrets.compare_digest(
        x_admin_token.encode(), expected.encode()
    ):
        raise AuthenticationError("Invalid admin token")
