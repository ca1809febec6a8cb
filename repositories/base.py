"""
Shared plumbing for the async MongoDB repositories.

Every repository wraps exactly one collection of the database handed to it
(``app.state.db``). All documents are shop-scoped, so each repository also
knows how to purge a shop.
"""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse *value* into an ObjectId, or None if it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class BaseRepository:
    collection_name: str = ""

    def __init__(self, db: AsyncDatabase) -> None:
        self._col: AsyncCollection = db[self.collection_name]

    async def delete_for_shop(self, shop: str) -> int:
        result = await self._col.delete_many({"shop": shop})
        return result.deleted_count
