"""
Storefront analytics ingestion.

One event per storefront action. Each event may write:
  - a visitor log row (when the script sent the visitor IP)
  - daily per-country counters (when a country code is present)
  - daily per-rule counters (when a rule id is present)
  - the monthly usage counter (billable events only: redirects and blocks)

All counters are atomic $inc upserts. The visitor log is best effort; a
failure there is logged and the counters are still written.
"""

from __future__ import annotations

import json
from typing import Optional

import pydantic
from pymongo.errors import PyMongoError

from errors import AuthenticationError, ValidationError
from repositories.analytics_repository import (
    CountryStatsRepository,
    RuleStatsRepository,
    VisitorLogRepository,
)
from repositories.settings_repository import SettingsRepository
from repositories.usage_repository import UsageRepository
from schemas.dto.requests.analytics import AnalyticsEventRequest
from schemas.models.analytics import VisitorLogDoc
from schemas.models.enums import EventType
from shared.datetime_utils import Clock, day_start, utc_now, year_month
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)

# Visitor-log action names differ from event names for historic reasons
VISITOR_LOG_ACTIONS: dict[EventType, str] = {
    EventType.REDIRECTED: "clicked_redirect",
    EventType.AUTO_REDIRECTED: "auto_redirect",
    EventType.IP_REDIRECTED: "ip_redirect",
    EventType.IP_BLOCKED: "ip_block",
    EventType.CLICKED_NO: "declined",
}

RULE_COUNTERS: dict[EventType, str] = {
    EventType.POPUP_SHOWN: "seen",
    EventType.REDIRECTED: "clicked_yes",
    EventType.AUTO_REDIRECTED: "auto_redirected",
    EventType.IP_REDIRECTED: "auto_redirected",
    EventType.CLICKED_NO: "clicked_no",
    EventType.DISMISSED: "dismissed",
    EventType.BLOCKED: "blocked",
    EventType.IP_BLOCKED: "blocked",
}


def visitor_log_action(event_type: EventType) -> str:
    return VISITOR_LOG_ACTIONS.get(event_type, event_type.value)


def country_counters(event_type: EventType) -> dict[str, int]:
    if event_type == EventType.VISIT:
        return {"visitors": 1}
    if event_type == EventType.POPUP_SHOWN:
        return {"popup_shown": 1}
    if event_type.is_redirect:
        return {"redirected": 1}
    if event_type.is_block:
        return {"blocked": 1}
    return {}


def rule_counters(event_type: EventType) -> dict[str, int]:
    field = RULE_COUNTERS.get(event_type)
    return {field: 1} if field else {}


def parse_event_body(raw: bytes) -> AnalyticsEventRequest:
    """Parse a (possibly text/plain) beacon body into an event."""
    text = raw.decode("utf-8", errors="replace") if raw else ""
    if not text.strip():
        raise ValidationError("Empty body")
    try:
        data = json.loads(text)
    except ValueError:
        raise ValidationError("Invalid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON")
    try:
        return AnalyticsEventRequest.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid event payload", details=e.errors(include_url=False))


class AnalyticsService:
    def __init__(
        self,
        settings: SettingsRepository,
        country_stats: CountryStatsRepository,
        rule_stats: RuleStatsRepository,
        visitor_logs: VisitorLogRepository,
        usage: UsageRepository,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._country_stats = country_stats
        self._rule_stats = rule_stats
        self._visitor_logs = visitor_logs
        self._usage = usage
        self._clock = clock

    async def validate_event(
        self, shop: Optional[str], event: AnalyticsEventRequest
    ) -> EventType:
        """Check shop and event type; returns the parsed EventType.

        Raises:
            ValidationError: shop or type missing, or type not accepted.
            AuthenticationError: the shop has never been set up.
        """
        if not shop or not event.type:
            raise ValidationError("Missing required fields")
        if not await self._settings.exists(shop):
            log.info("analytics_unknown_shop", shop=shop)
            raise AuthenticationError("Unauthorized: Invalid shop")
        try:
            return EventType(event.type)
        except ValueError:
            raise ValidationError("Invalid event type", field="type")

    async def record(
        self,
        shop: str,
        event_type: EventType,
        event: AnalyticsEventRequest,
        user_agent: Optional[str] = None,
    ) -> bool:
        """Write every counter the event touches. Returns False on a store error."""
        now = self._clock()

        if event.visitor_ip:
            await self._log_visitor(shop, event_type, event, user_agent, now)

        try:
            today = day_start(now)
            country = (event.country_code or "").strip().upper()
            if country:
                await self._country_stats.increment(
                    shop, today, country, country_counters(event_type)
                )
            if event.rule_id:
                await self._rule_stats.increment(
                    shop, today, event.rule_id, event.rule_name, rule_counters(event_type)
                )
            if event_type.is_billable:
                await self._usage.increment(
                    shop,
                    year_month(now),
                    redirected=1 if event_type.is_redirect else 0,
                    blocked=1 if event_type.is_block else 0,
                )
        except PyMongoError as e:
            log.error(
                "analytics_counter_failed",
                shop=shop,
                event_type=event_type.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    async def _log_visitor(self, shop, event_type, event, user_agent, now) -> None:
        entry = VisitorLogDoc(
            shop=shop,
            ip_address=event.visitor_ip,
            country_code=event.country_code or None,
            action=visitor_log_action(event_type),
            rule_name=event.rule_name or None,
            target_url=event.target_url or None,
            user_agent=user_agent or "Unknown",
            timestamp=now,
        )
        try:
            await self._visitor_logs.insert(entry)
        except PyMongoError as e:
            log.warning(
                "visitor_log_write_failed",
                shop=shop,
                visitor_ip=hash_ip(event.visitor_ip),
                error=str(e),
            )
