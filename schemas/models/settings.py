"""
Shop settings document model.

Maps to the `settings` MongoDB collection (one document per shop).

Created lazily with the defaults below the first time a shop's settings are
read by the admin API. The popup/blocked-page fields are passthrough display
data for the storefront script; the engine only reads mode, exclude_bots and
excluded_ips. `plan` is written by the billing integration, never by the
settings form.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from schemas.models.base import MongoBaseModel, split_list
from schemas.models.enums import Mode, PlanKind


DEFAULT_POPUP_TITLE = "Would you like to switch to a local version?"
DEFAULT_POPUP_MESSAGE = (
    "We noticed you are visiting from {country}. Would you like to go to {target}?"
)
DEFAULT_BLOCKED_MESSAGE = "We do not offer services in your country/region."


class SettingsDoc(MongoBaseModel):
    """Document model for the `settings` collection."""

    shop: str
    mode: Mode = Mode.POPUP
    plan: PlanKind = PlanKind.FREE

    # Popup template
    template: str = "modal"
    popup_title: str = DEFAULT_POPUP_TITLE
    popup_message: str = DEFAULT_POPUP_MESSAGE
    confirm_btn_text: str = "Go now"
    cancel_btn_text: str = "Stay here"
    popup_bg_color: str = "#ffffff"
    popup_text_color: str = "#333333"
    popup_btn_color: str = "#007bff"

    # Blocked page
    blocked_title: str = "Access Denied"
    blocked_message: str = DEFAULT_BLOCKED_MESSAGE

    # Visitor exemptions
    exclude_bots: bool = True
    excluded_ips: list[str] = Field(default_factory=list)

    # How long the storefront remembers a visitor's popup choice
    cookie_duration: int = Field(default=7, ge=0)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("excluded_ips", mode="before")
    @classmethod
    def _split_excluded_ips(cls, v: Any) -> list[str]:
        return split_list(v)
