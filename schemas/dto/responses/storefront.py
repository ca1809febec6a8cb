"""
Response DTOs for the storefront proxy endpoints.

StorefrontConfigResponse — GET /proxy/config and GET /api/geolocation
AnalyticsAckResponse     — POST /proxy/analytics

Keys are camelCase because the storefront script reads them directly
(``visitorIP``, ``isIPExcluded`` and ``ipRules`` keep their historic casing).
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class PopupConfig(_CamelModel):
    title: str
    message: str
    confirm_btn: str
    cancel_btn: str
    bg_color: str
    text_color: str
    btn_color: str
    template: str = "modal"


class BlockedConfig(_CamelModel):
    title: str
    message: str


class CountryRuleItem(_CamelModel):
    rule_id: str
    name: str
    rule_type: str
    countries: list[str]
    target_url: str
    priority: int


class IpRuleItem(_CamelModel):
    rule_id: str
    name: str
    rule_type: str
    ips: list[str]
    target_url: str
    priority: int


class StorefrontConfigResponse(_CamelModel):
    """Everything the storefront script needs to act on one page view.

    ``decision`` is the server-side resolution; ``rules``/``ipRules`` let the
    script re-evaluate locally (e.g. after a popup is dismissed).
    """

    enabled: bool
    mode: str
    visitor_ip: str = Field(alias="visitorIP")
    detected_country: Optional[str] = None
    is_ip_excluded: bool = Field(default=False, alias="isIPExcluded")
    is_bot: bool = False
    limit_reached: bool = False
    exclude_bots: bool = True
    cookie_duration: int = 7
    popup: Optional[PopupConfig] = None
    blocked: Optional[BlockedConfig] = None
    rules: list[CountryRuleItem] = Field(default_factory=list)
    ip_rules: list[IpRuleItem] = Field(default_factory=list)
    decision: dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None


class AnalyticsAckResponse(BaseModel):
    success: bool = True
