"""
Redirect/block rule document model.

Maps to the `rules` MongoDB collection.

A rule matches either by country (country_codes) or by visitor IP
(ip_addresses), selected by match_type. The other list is ignored.
List fields accept the comma-separated strings the admin forms submit;
ip_addresses entries are kept verbatim so CIDR notation round-trips.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import Field, ValidationError, field_validator

from schemas.models.base import MongoBaseModel, split_list
from schemas.models.enums import MatchType, RuleType
from shared.logging import get_logger

log = get_logger(__name__)


class RuleDoc(MongoBaseModel):
    """Document model for the `rules` collection."""

    shop: str
    name: str = "Untitled rule"
    match_type: MatchType = MatchType.COUNTRY
    country_codes: list[str] = Field(default_factory=list)
    ip_addresses: list[str] = Field(default_factory=list)
    target_url: str = ""
    rule_type: RuleType = RuleType.REDIRECT
    is_active: bool = True
    priority: int = 0

    # Schedule (only consulted when schedule_enabled is true)
    schedule_enabled: bool = False
    start_time: Optional[str] = None  # "HH:mm"
    end_time: Optional[str] = None  # "HH:mm"
    days_of_week: list[int] = Field(default_factory=list)  # 0=Sunday..6=Saturday
    timezone: Optional[str] = None  # IANA name, None → UTC

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("country_codes", mode="before")
    @classmethod
    def _split_country_codes(cls, v: Any) -> list[str]:
        return [code.upper() for code in split_list(v)]

    @field_validator("ip_addresses", mode="before")
    @classmethod
    def _split_ip_addresses(cls, v: Any) -> list[str]:
        return split_list(v)

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _parse_days(cls, v: Any) -> list[int]:
        # Unknown entries are dropped rather than rejected; an empty result
        # means "every day".
        days: list[int] = []
        for item in split_list(v):
            try:
                day = int(item)
            except ValueError:
                continue
            if 0 <= day <= 6 and day not in days:
                days.append(day)
        return days

    @field_validator("start_time", "end_time", "timezone", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @property
    def rule_id(self) -> str:
        return str(self.id) if self.id is not None else ""


def parse_rule_documents(docs: Iterable[dict], *, shop: str) -> list[RuleDoc]:
    """Validate stored rule documents one by one; invalid ones are logged and dropped."""
    rules: list[RuleDoc] = []
    for doc in docs:
        try:
            rules.append(RuleDoc.model_validate(doc))
        except ValidationError as e:
            first = e.errors()[0]
            log.warning(
                "rule_document_invalid",
                shop=shop,
                rule_id=str(doc.get("_id", "")),
                field=".".join(str(part) for part in first["loc"]),
                error=first["msg"],
            )
    return rules
