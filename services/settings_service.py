"""
Shop settings, plan and usage administration.

Settings are created with their defaults on first read. The plan is only
changed through set_plan(), which the billing integration calls whenever the
shop's subscription changes.
"""

from __future__ import annotations

from engine import check_usage
from engine.ip_matcher import parse_address
from engine.plans import overage_amount, plan_limit
from errors import ValidationError
from infrastructure.cache.shop_config_cache import ShopConfigCache
from repositories.settings_repository import SettingsRepository
from repositories.usage_repository import UsageRepository
from schemas.dto.requests.settings import UpdateSettingsRequest
from schemas.dto.responses.settings import UsageResponse
from schemas.models.enums import PlanKind
from schemas.models.settings import SettingsDoc
from schemas.models.usage import usage_or_empty
from shared.datetime_utils import Clock, utc_now, year_month
from shared.logging import get_logger
from shared.validators import validate_hex_color

log = get_logger(__name__)

COLOR_FIELDS = ("popup_bg_color", "popup_text_color", "popup_btn_color")


def _validate_settings_changes(changes: dict) -> None:
    for field in COLOR_FIELDS:
        value = changes.get(field)
        if value is not None and not validate_hex_color(value):
            raise ValidationError("Colors must be #rgb or #rrggbb", field=field)

    # Excluded IPs are compared literally, so ranges are rejected here
    bad = [ip for ip in changes.get("excluded_ips") or [] if parse_address(ip) is None]
    if bad:
        raise ValidationError(
            "Excluded IPs must be single addresses", field="excluded_ips", details=bad
        )


class SettingsService:
    def __init__(
        self,
        settings: SettingsRepository,
        usage: UsageRepository,
        cache: ShopConfigCache,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._usage = usage
        self._cache = cache
        self._clock = clock

    async def get_settings(self, shop: str) -> SettingsDoc:
        return await self._settings.get_or_create(shop, self._clock())

    async def update_settings(
        self, shop: str, request: UpdateSettingsRequest
    ) -> SettingsDoc:
        changes = {
            key: value
            for key, value in request.model_dump(exclude_unset=True).items()
            if value is not None
        }
        _validate_settings_changes(changes)

        current = await self.get_settings(shop)
        if not changes:
            return current

        if "mode" in changes:
            changes["mode"] = changes["mode"].value
        updated = await self._settings.update(shop, changes, self._clock())
        await self._cache.invalidate(shop)
        log.info("settings_updated", shop=shop, fields=sorted(changes))
        return updated or current

    async def set_plan(self, shop: str, plan: PlanKind) -> SettingsDoc:
        await self.get_settings(shop)
        updated = await self._settings.set_plan(shop, plan, self._clock())
        await self._cache.invalidate(shop)
        log.info("plan_changed", shop=shop, plan=plan.value)
        return updated

    async def usage_summary(self, shop: str) -> UsageResponse:
        settings = await self.get_settings(shop)
        ym = year_month(self._clock())
        usage = usage_or_empty(await self._usage.get(shop, ym), shop, ym)
        gate = check_usage(usage, settings.plan)
        return UsageResponse(
            shop=shop,
            year_month=ym,
            plan=settings.plan.value,
            plan_limit=plan_limit(settings.plan),
            total_visitors=usage.total_visitors,
            redirected=usage.redirected,
            blocked=usage.blocked,
            charged_visitors=usage.charged_visitors,
            suspended=gate.suspended,
            overage_visitors=gate.overage_visitors,
            overage_amount=overage_amount(gate.overage_visitors),
        )
