"""
Response DTOs for shop settings, plan usage and billing.

SettingsResponse — GET/PUT /admin/shops/{shop}/settings, PUT .../plan
UsageResponse    — GET /admin/shops/{shop}/usage
OverageResponse  — POST /admin/shops/{shop}/billing/overage
PurgeResponse    — DELETE /admin/shops/{shop}
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.models.settings import SettingsDoc


class SettingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    shop: str
    mode: str
    plan: str
    template: str
    popup_title: str
    popup_message: str
    confirm_btn_text: str
    cancel_btn_text: str
    popup_bg_color: str
    popup_text_color: str
    popup_btn_color: str
    blocked_title: str
    blocked_message: str
    exclude_bots: bool
    excluded_ips: list[str]
    cookie_duration: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, settings: SettingsDoc) -> "SettingsResponse":
        return cls(**settings.model_dump(mode="json", exclude={"id"}))


class UsageResponse(BaseModel):
    shop: str
    year_month: str
    plan: str
    plan_limit: int
    total_visitors: int
    redirected: int
    blocked: int
    charged_visitors: int
    suspended: bool
    overage_visitors: int
    overage_amount: float


class OverageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    charged: bool
    overage_visitors: int = Field(alias="overageVisitors")
    amount: float


class PurgeResponse(BaseModel):
    shop: str
    deleted: dict[str, int]
