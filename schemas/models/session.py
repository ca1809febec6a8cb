"""
Shopify session document model.

Maps to the `shopify_sessions` collection written by the OAuth install flow
(which lives outside this service). Only offline sessions carry the access
token used for Admin API billing calls.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


class ShopSessionDoc(MongoBaseModel):
    # Session ids are opaque strings ("offline_<shop>"), not ObjectIds
    id: Optional[Any] = Field(default=None, alias="_id")

    shop: str
    access_token: str = Field(alias="accessToken")
    is_online: bool = Field(default=False, alias="isOnline")
    scope: Optional[str] = None
    expires: Optional[datetime] = None
