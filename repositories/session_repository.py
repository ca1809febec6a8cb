"""Read access to the Shopify sessions stored by the install flow."""

from __future__ import annotations

from typing import Optional

from repositories.base import BaseRepository
from schemas.models.session import ShopSessionDoc


class SessionRepository(BaseRepository):
    collection_name = "shopify_sessions"

    async def get_offline_session(self, shop: str) -> Optional[ShopSessionDoc]:
        doc = await self._col.find_one({"shop": shop, "isOnline": False})
        return ShopSessionDoc.from_mongo(doc)
