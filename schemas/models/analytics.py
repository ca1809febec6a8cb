"""
Daily analytics counter document models.

AnalyticsCountryDoc → `analytics_country`, unique per (shop, date, country_code)
AnalyticsRuleDoc    → `analytics_rule`,    unique per (shop, date, rule_id)
VisitorLogDoc       → `visitor_logs`,      one row per storefront event with an IP

`date` is the UTC midnight of the day the events were counted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel


class AnalyticsCountryDoc(MongoBaseModel):
    shop: str
    date: datetime
    country_code: str
    visitors: int = 0
    popup_shown: int = 0
    redirected: int = 0
    blocked: int = 0


class AnalyticsRuleDoc(MongoBaseModel):
    shop: str
    date: datetime
    rule_id: str
    rule_name: str = "Unknown Rule"
    seen: int = 0
    clicked_yes: int = 0
    clicked_no: int = 0
    dismissed: int = 0
    auto_redirected: int = 0
    blocked: int = 0


class VisitorLogDoc(MongoBaseModel):
    shop: str
    ip_address: str
    country_code: Optional[str] = None
    action: str
    rule_name: Optional[str] = None
    target_url: Optional[str] = None
    user_agent: str = "Unknown"
    timestamp: datetime
