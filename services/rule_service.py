"""
Rule administration: validation, CRUD and cache invalidation.

Rules are validated as a whole after every change (a PATCH is merged onto
the stored rule first), so a stored rule always satisfies the checks in
validate_rule(). Every successful write drops the shop's cached snapshot.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, ValidationError
from infrastructure.cache.shop_config_cache import ShopConfigCache
from repositories.rule_repository import RuleRepository
from schemas.dto.requests.rule import CreateRuleRequest, UpdateRuleRequest
from schemas.models.enums import MatchType, RuleType
from schemas.models.rule import RuleDoc
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger
from shared.validators import (
    invalid_country_codes,
    invalid_days,
    invalid_ip_patterns,
    validate_hhmm,
    validate_target_url,
    validate_timezone,
)

log = get_logger(__name__)


def validate_rule(rule: RuleDoc) -> None:
    """Raise ValidationError (with the offending field) if *rule* is unusable."""
    if not rule.name.strip():
        raise ValidationError("Rule name is required", field="name")

    if rule.match_type == MatchType.COUNTRY:
        if not rule.country_codes:
            raise ValidationError("At least one country is required", field="country_codes")
        bad = invalid_country_codes(rule.country_codes)
        if bad:
            raise ValidationError(
                "Unknown country codes", field="country_codes", details=bad
            )
    else:
        if not rule.ip_addresses:
            raise ValidationError(
                "At least one IP address or CIDR range is required",
                field="ip_addresses",
            )
        bad = invalid_ip_patterns(rule.ip_addresses)
        if bad:
            raise ValidationError(
                "Invalid IP addresses", field="ip_addresses", details=bad
            )

    if rule.rule_type == RuleType.REDIRECT and not validate_target_url(rule.target_url):
        raise ValidationError(
            "Redirect rules need an absolute http(s) URL", field="target_url"
        )

    if rule.schedule_enabled:
        for field in ("start_time", "end_time"):
            value = getattr(rule, field)
            if value is not None and not validate_hhmm(value):
                raise ValidationError("Time must be HH:mm", field=field)
        if rule.timezone is not None and not validate_timezone(rule.timezone):
            raise ValidationError("Unknown timezone", field="timezone")


def _check_days(days: Optional[list[int]]) -> None:
    # RuleDoc silently drops bad days; reject them at the API instead
    if days and invalid_days(days):
        raise ValidationError(
            "Days must be 0 (Sunday) to 6 (Saturday)",
            field="days_of_week",
            details=invalid_days(days),
        )


class RuleService:
    def __init__(
        self,
        rules: RuleRepository,
        cache: ShopConfigCache,
        clock: Clock = utc_now,
    ) -> None:
        self._rules = rules
        self._cache = cache
        self._clock = clock

    async def list_rules(
        self, shop: str, match_type: Optional[MatchType] = None
    ) -> list[RuleDoc]:
        return await self._rules.list_for_shop(shop, match_type=match_type)

    async def get_rule(self, shop: str, rule_id: str) -> RuleDoc:
        rule = await self._rules.get(shop, rule_id)
        if rule is None:
            raise NotFoundError("Rule not found")
        return rule

    async def create_rule(self, shop: str, request: CreateRuleRequest) -> RuleDoc:
        _check_days(request.days_of_week)
        now = self._clock()
        rule = RuleDoc(
            shop=shop,
            **request.model_dump(),
            created_at=now,
            updated_at=now,
        )
        validate_rule(rule)
        created = await self._rules.insert(rule)
        await self._cache.invalidate(shop)
        log.info(
            "rule_created",
            shop=shop,
            rule_id=created.rule_id,
            match_type=created.match_type.value,
        )
        return created

    async def update_rule(
        self, shop: str, rule_id: str, request: UpdateRuleRequest
    ) -> RuleDoc:
        changes = request.model_dump(exclude_unset=True)
        _check_days(changes.get("days_of_week"))
        current = await self.get_rule(shop, rule_id)
        if not changes:
            return current

        try:
            merged = RuleDoc.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ValidationError(first["msg"], field=str(first["loc"][0])) from e
        validate_rule(merged)

        stored = merged.to_mongo()
        fields = {key: stored[key] for key in changes}
        updated = await self._rules.update(shop, rule_id, fields, self._clock())
        if updated is None:
            raise NotFoundError("Rule not found")
        await self._cache.invalidate(shop)
        log.info("rule_updated", shop=shop, rule_id=rule_id, fields=sorted(fields))
        return updated

    async def delete_rule(self, shop: str, rule_id: str) -> None:
        if not await self._rules.delete(shop, rule_id):
            raise NotFoundError("Rule not found")
        await self._cache.invalidate(shop)
        log.info("rule_deleted", shop=shop, rule_id=rule_id)

    async def bulk_delete(self, shop: str, rule_ids: Iterable[str]) -> int:
        deleted = await self._rules.delete_many(shop, rule_ids)
        if deleted:
            await self._cache.invalidate(shop)
        log.info("rules_bulk_deleted", shop=shop, deleted=deleted)
        return deleted
