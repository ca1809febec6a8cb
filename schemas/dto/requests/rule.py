"""
Request DTOs for rule administration endpoints.

Field names accept both snake_case and the camelCase used by the embedded
admin forms (``matchType``, ``countryCodes`` ...). List fields also accept
the comma/newline separated strings those forms submit.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from schemas.models.base import split_list
from schemas.models.enums import MatchType, RuleType


class _RuleFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    @field_validator("country_codes", "ip_addresses", mode="before", check_fields=False)
    @classmethod
    def _split(cls, v: Any) -> Any:
        if v is None:
            return v
        return split_list(v)

    @field_validator("days_of_week", mode="before", check_fields=False)
    @classmethod
    def _split_days(cls, v: Any) -> Any:
        if v is None or isinstance(v, list):
            return v
        return split_list(v)


class CreateRuleRequest(_RuleFields):
    """Request body for creating a rule. Cross-field checks live in RuleService."""

    name: str = Field(default="Untitled rule", min_length=1, max_length=200)
    match_type: MatchType = MatchType.COUNTRY
    country_codes: list[str] = Field(default_factory=list)
    ip_addresses: list[str] = Field(default_factory=list)
    target_url: str = ""
    rule_type: RuleType = RuleType.REDIRECT
    is_active: bool = True
    priority: int = 0
    schedule_enabled: bool = False
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    days_of_week: list[int] = Field(default_factory=list)
    timezone: Optional[str] = None


class UpdateRuleRequest(_RuleFields):
    """Partial update; only provided fields change."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    match_type: Optional[MatchType] = None
    country_codes: Optional[list[str]] = None
    ip_addresses: Optional[list[str]] = None
    target_url: Optional[str] = None
    rule_type: Optional[RuleType] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    schedule_enabled: Optional[bool] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    days_of_week: Optional[list[int]] = None
    timezone: Optional[str] = None


class BulkDeleteRulesRequest(BaseModel):
    ids: list[str] = Field(min_length=1)

    @field_validator("ids", mode="before")
    @classmethod
    def _split_ids(cls, v: Any) -> list[str]:
        return split_list(v)
