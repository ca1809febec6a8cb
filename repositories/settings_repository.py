"""Shop settings store (one document per shop, created lazily)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pymongo import ReturnDocument

from repositories.base import BaseRepository
from schemas.models.enums import PlanKind
from schemas.models.settings import SettingsDoc


class SettingsRepository(BaseRepository):
    collection_name = "settings"

    async def get(self, shop: str) -> Optional[SettingsDoc]:
        doc = await self._col.find_one({"shop": shop})
        return SettingsDoc.from_mongo(doc)

    async def exists(self, shop: str) -> bool:
        return await self._col.count_documents({"shop": shop}, limit=1) > 0

    async def get_or_create(self, shop: str, now: datetime) -> SettingsDoc:
        """Return the shop's settings, inserting the defaults on first access."""
        defaults = SettingsDoc(shop=shop, created_at=now, updated_at=now).to_mongo()
        defaults.pop("shop")
        doc = await self._col.find_one_and_update(
            {"shop": shop},
            {"$setOnInsert": defaults},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return SettingsDoc.from_mongo(doc)

    async def update(
        self, shop: str, fields: dict[str, Any], now: datetime
    ) -> Optional[SettingsDoc]:
        doc = await self._col.find_one_and_update(
            {"shop": shop},
            {"$set": {**fields, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return SettingsDoc.from_mongo(doc)

    async def set_plan(self, shop: str, plan: PlanKind, now: datetime) -> Optional[SettingsDoc]:
        return await self.update(shop, {"plan": plan.value}, now)
