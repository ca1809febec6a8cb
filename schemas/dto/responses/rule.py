"""
Response DTOs for rule administration.

RuleResponse       — one rule (GET/POST/PATCH /admin/shops/{shop}/rules...)
RuleListResponse   — GET /admin/shops/{shop}/rules
BulkDeleteResponse — POST /admin/shops/{shop}/rules/bulk-delete
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.rule import RuleDoc


class RuleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    shop: str
    name: str
    match_type: str
    country_codes: list[str]
    ip_addresses: list[str]
    target_url: str
    rule_type: str
    is_active: bool
    priority: int
    schedule_enabled: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    days_of_week: list[int]
    timezone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, rule: RuleDoc) -> "RuleResponse":
        data = rule.model_dump(mode="json", exclude={"id"})
        return cls(id=rule.rule_id, **data)


class RuleListResponse(BaseModel):
    items: list[RuleResponse]
    total: int


class BulkDeleteResponse(BaseModel):
    deleted: int
