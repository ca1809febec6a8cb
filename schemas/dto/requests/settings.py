"""
Request DTOs for shop settings and plan endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from schemas.models.base import split_list
from schemas.models.enums import Mode, PlanKind


class UpdateSettingsRequest(BaseModel):
    """Partial settings update from the admin settings form.

    ``plan`` is intentionally absent: it is only set through SetPlanRequest.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    mode: Optional[Mode] = None
    template: Optional[str] = Field(default=None, max_length=50)
    popup_title: Optional[str] = Field(default=None, max_length=500)
    popup_message: Optional[str] = Field(default=None, max_length=2000)
    confirm_btn_text: Optional[str] = Field(default=None, max_length=100)
    cancel_btn_text: Optional[str] = Field(default=None, max_length=100)
    popup_bg_color: Optional[str] = None
    popup_text_color: Optional[str] = None
    popup_btn_color: Optional[str] = None
    blocked_title: Optional[str] = Field(default=None, max_length=500)
    blocked_message: Optional[str] = Field(default=None, max_length=2000)
    exclude_bots: Optional[bool] = None
    excluded_ips: Optional[list[str]] = None
    cookie_duration: Optional[int] = Field(default=None, ge=0, le=365)

    @field_validator("excluded_ips", mode="before")
    @classmethod
    def _split_ips(cls, v: Any) -> Any:
        if v is None:
            return v
        return split_list(v)


class SetPlanRequest(BaseModel):
    plan: PlanKind
