"""
Storefront endpoints, called by the theme script through the Shopify app proxy.

GET  /proxy/config     — per-visitor config and decision (never cached)
GET  /api/geolocation  — same payload, cacheable for a minute
POST /proxy/analytics  — one storefront event (sendBeacon, often text/plain)

None of these ever answer with a 5xx: a broken store or resolver degrades to
the disabled, no-action config.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from dependencies import get_analytics_service, get_log_retention, get_storefront_service
from schemas.dto.responses.storefront import AnalyticsAckResponse
from services.analytics_service import AnalyticsService, parse_event_body
from services.log_retention import LogRetention
from services.storefront_service import StorefrontService, disabled_config
from shared.ip_utils import get_client_ip, get_country_hint
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["storefront"])

NO_STORE = "no-store, no-cache, must-revalidate"
PUBLIC_ONE_MINUTE = "public, max-age=60"


async def _config_response(
    request: Request,
    shop: Optional[str],
    service: StorefrontService,
    cache_control: str,
) -> JSONResponse:
    headers = {"Cache-Control": cache_control}
    if not shop:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Missing shop parameter",
                "code": "validation_error",
                "enabled": False,
            },
            headers=headers,
        )

    visitor_ip = get_client_ip(request)
    try:
        config = await service.build_config(
            shop,
            visitor_ip,
            user_agent=request.headers.get("user-agent"),
            country_hint=get_country_hint(request),
        )
    except Exception as e:
        log.error(
            "storefront_config_failed",
            shop=shop,
            error=str(e),
            error_type=type(e).__name__,
        )
        config = disabled_config(visitor_ip)

    return JSONResponse(
        content=config.model_dump(mode="json", by_alias=True),
        headers=headers,
    )


@router.get("/proxy/config")
async def proxy_config(
    request: Request,
    shop: Optional[str] = Query(default=None),
    service: StorefrontService = Depends(get_storefront_service),
) -> JSONResponse:
    return await _config_response(request, shop, service, NO_STORE)


@router.get("/api/geolocation")
async def geolocation(
    request: Request,
    shop: Optional[str] = Query(default=None),
    service: StorefrontService = Depends(get_storefront_service),
) -> JSONResponse:
    return await _config_response(request, shop, service, PUBLIC_ONE_MINUTE)


@router.post("/proxy/analytics", response_model=AnalyticsAckResponse)
async def proxy_analytics(
    request: Request,
    background_tasks: BackgroundTasks,
    shop: Optional[str] = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
    retention: LogRetention = Depends(get_log_retention),
) -> AnalyticsAckResponse:
    background_tasks.add_task(retention.maybe_run)

    event = parse_event_body(await request.body())
    try:
        event_type = await service.validate_event(shop, event)
    except PyMongoError as e:
        log.error("analytics_shop_lookup_failed", shop=shop, error=str(e))
        return AnalyticsAckResponse(success=False)

    ok = await service.record(
        shop, event_type, event, user_agent=request.headers.get("user-agent")
    )
    return AnalyticsAckResponse(success=ok)
