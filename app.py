"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.billing.shopify import ShopifyBillingProvider
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.geoip import GeoIPService
from infrastructure.geoip_updater import GeoIPUpdater
from infrastructure.http_client import HttpClient
from repositories.analytics_repository import VisitorLogRepository
from repositories.indexes import ensure_indexes
from repositories.session_repository import SessionRepository
from routes.admin_routes import router as admin_router
from routes.health_routes import router as health_router
from routes.proxy_routes import router as proxy_router
from services.log_retention import LogRetention
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


async def refresh_geoip(updater: GeoIPUpdater, geoip: GeoIPService) -> None:
    """Download a newer GeoIP database if due, then make the service reopen it."""
    if await updater.update_if_needed():
        await geoip.reload()


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings
        await ensure_indexes(app.state.db)

        # Redis is optional; without it the shop config cache is a no-op
        app.state.redis = await create_redis_client(settings.redis.redis_uri)

        http_client = HttpClient(timeout=10.0)
        app.state.http_client = http_client

        geoip = GeoIPService(settings.geoip.geoip_country_db)
        app.state.geoip = geoip
        updater = GeoIPUpdater(
            db_path=settings.geoip.geoip_country_db,
            license_key=settings.geoip.maxmind_license_key,
            download_url=settings.geoip.geoip_download_url,
            http_client=http_client,
            max_age_days=settings.geoip.geoip_max_age_days,
        )
        geoip_refresh = asyncio.create_task(refresh_geoip(updater, geoip))

        app.state.billing_provider = ShopifyBillingProvider(
            sessions=SessionRepository(app.state.db),
            http_client=http_client,
            api_version=settings.billing.shopify_api_version,
        )
        app.state.log_retention = LogRetention(
            VisitorLogRepository(app.state.db),
            retention_days=settings.log_retention_days,
        )

        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        geoip_refresh.cancel()
        with suppress(asyncio.CancelledError):
            await geoip_refresh
        await geoip.close()
        await http_client.aclose()
        await mongo_client.close()
        if app.state.redis is not None:
            await app.state.redis.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Storefront scripts call in from every shop domain without credentials
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(proxy_router)
    app.include_router(admin_router)

    return app
