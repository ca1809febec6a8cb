"""
Storefront decision service.

Builds the JSON config the storefront script fetches on every page view:
the shop's display settings, the live rule lists and the server-side
decision for this visitor.

Storage failures never reach the visitor. Any MongoDB error yields the
disabled shape with an Allow decision so the storefront simply does nothing.
"""

from __future__ import annotations

from typing import Optional

from pymongo.errors import PyMongoError

from engine import (
    Allow,
    AllowReason,
    ResolveContext,
    check_usage,
    decision_to_dict,
    filter_live_rules,
    resolve,
)
from infrastructure.cache.shop_config_cache import ShopConfigCache, ShopSnapshot
from infrastructure.geoip import GeoIPService
from repositories.rule_repository import RuleRepository
from repositories.settings_repository import SettingsRepository
from repositories.usage_repository import UsageRepository
from schemas.dto.responses.storefront import (
    BlockedConfig,
    CountryRuleItem,
    IpRuleItem,
    PopupConfig,
    StorefrontConfigResponse,
)
from schemas.models.enums import MatchType, Mode
from schemas.models.rule import RuleDoc
from schemas.models.settings import SettingsDoc
from schemas.models.usage import usage_or_empty
from shared.bot_detection import is_bot_request
from shared.datetime_utils import Clock, utc_now, year_month
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


def _country_item(rule: RuleDoc) -> CountryRuleItem:
    return CountryRuleItem(
        rule_id=rule.rule_id,
        name=rule.name,
        rule_type=rule.rule_type.value,
        countries=[code.strip().upper() for code in rule.country_codes],
        target_url=rule.target_url,
        priority=rule.priority,
    )


def _ip_item(rule: RuleDoc) -> IpRuleItem:
    return IpRuleItem(
        rule_id=rule.rule_id,
        name=rule.name,
        rule_type=rule.rule_type.value,
        ips=list(rule.ip_addresses),
        target_url=rule.target_url,
        priority=rule.priority,
    )


def _popup(settings: SettingsDoc) -> PopupConfig:
    return PopupConfig(
        title=settings.popup_title,
        message=settings.popup_message,
        confirm_btn=settings.confirm_btn_text,
        cancel_btn=settings.cancel_btn_text,
        bg_color=settings.popup_bg_color,
        text_color=settings.popup_text_color,
        btn_color=settings.popup_btn_color,
        template=settings.template or "modal",
    )


def disabled_config(
    visitor_ip: str,
    country_code: Optional[str] = None,
    *,
    is_bot: bool = False,
    message: Optional[str] = None,
) -> StorefrontConfigResponse:
    """The no-action config: storefront shows nothing and redirects nowhere."""
    return StorefrontConfigResponse(
        enabled=False,
        mode=Mode.DISABLED.value,
        visitor_ip=visitor_ip,
        detected_country=country_code or None,
        is_bot=is_bot,
        decision=decision_to_dict(Allow(AllowReason.MODE_DISABLED)),
        message=message,
    )


class StorefrontService:
    def __init__(
        self,
        rules: RuleRepository,
        settings: SettingsRepository,
        usage: UsageRepository,
        cache: ShopConfigCache,
        geoip: GeoIPService,
        clock: Clock = utc_now,
    ) -> None:
        self._rules = rules
        self._settings = settings
        self._usage = usage
        self._cache = cache
        self._geoip = geoip
        self._clock = clock

    async def load_snapshot(self, shop: str) -> ShopSnapshot:
        """Settings plus ordered rules, from Redis when cached."""
        cached = await self._cache.get(shop)
        if cached is not None:
            return cached

        settings = await self._settings.get(shop)
        rules = await self._rules.list_for_shop(shop) if settings is not None else []
        snapshot = ShopSnapshot(settings=settings, rules=rules)
        await self._cache.set(shop, snapshot)
        return snapshot

    async def detect_country(
        self, visitor_ip: str, country_hint: Optional[str] = None
    ) -> str:
        """GeoIP country for the visitor, falling back to the CDN header."""
        country = await self._geoip.get_country_code(visitor_ip)
        if not country and country_hint:
            return country_hint
        return country

    async def build_config(
        self,
        shop: str,
        visitor_ip: str,
        *,
        user_agent: Optional[str] = None,
        country_hint: Optional[str] = None,
    ) -> StorefrontConfigResponse:
        now = self._clock()
        is_bot = is_bot_request(user_agent)
        country = await self.detect_country(visitor_ip, country_hint)

        try:
            snapshot = await self.load_snapshot(shop)
            settings = snapshot.settings
            if settings is None:
                return disabled_config(
                    visitor_ip,
                    country,
                    is_bot=is_bot,
                    message="No settings configured for this shop",
                )
            ym = year_month(now)
            usage = usage_or_empty(await self._usage.get(shop, ym), shop, ym)
        except PyMongoError as e:
            log.error(
                "storefront_config_store_error",
                shop=shop,
                error=str(e),
                error_type=type(e).__name__,
            )
            return disabled_config(visitor_ip, country, is_bot=is_bot)

        gate = check_usage(usage, settings.plan)
        decision = resolve(
            snapshot.rules,
            ResolveContext(
                visitor_ip=visitor_ip,
                country_code=country,
                is_bot=is_bot,
                now=now,
                settings=settings,
                gate=gate,
            ),
        )

        enabled = settings.mode != Mode.DISABLED and not gate.suspended
        live = filter_live_rules(snapshot.rules, now) if enabled else []

        log.debug(
            "storefront_decision",
            shop=shop,
            visitor_ip=hash_ip(visitor_ip),
            country=country,
            action=decision.kind,
        )

        return StorefrontConfigResponse(
            enabled=enabled,
            mode=settings.mode.value,
            visitor_ip=visitor_ip,
            detected_country=country or None,
            is_ip_excluded=visitor_ip in settings.excluded_ips,
            is_bot=is_bot,
            limit_reached=gate.suspended,
            exclude_bots=settings.exclude_bots,
            cookie_duration=settings.cookie_duration,
            popup=_popup(settings),
            blocked=BlockedConfig(
                title=settings.blocked_title, message=settings.blocked_message
            ),
            rules=[_country_item(r) for r in live if r.match_type == MatchType.COUNTRY],
            ip_rules=[_ip_item(r) for r in live if r.match_type == MatchType.IP],
            decision=decision_to_dict(decision),
        )
