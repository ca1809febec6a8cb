"""
Request DTO for storefront analytics events.

The storefront script posts these with ``navigator.sendBeacon`` so the body
may arrive as text/plain; the route parses the raw body itself. ``type`` is
kept as a plain string here and checked against the whitelist in
AnalyticsService so unknown types get a 400 with a clear message.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalyticsEventRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Optional[str] = None
    country_code: Optional[str] = Field(default=None, alias="countryCode", max_length=8)
    rule_id: Optional[str] = Field(default=None, alias="ruleId", max_length=64)
    rule_name: Optional[str] = Field(default=None, alias="ruleName", max_length=200)
    visitor_ip: Optional[str] = Field(default=None, alias="visitorIP", max_length=64)
    target_url: Optional[str] = Field(default=None, alias="targetUrl", max_length=2048)
