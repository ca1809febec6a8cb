"""
Rule store.

Rules are always returned in evaluation order: priority descending, then
oldest first. The resolver relies on this order for its "first seen wins"
tie-break.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from repositories.base import BaseRepository, to_object_id
from schemas.models.enums import MatchType
from schemas.models.rule import RuleDoc, parse_rule_documents

RULE_SORT = [("priority", DESCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)]


class RuleRepository(BaseRepository):
    collection_name = "rules"

    async def list_for_shop(
        self,
        shop: str,
        *,
        match_type: Optional[MatchType] = None,
        active_only: bool = False,
    ) -> list[RuleDoc]:
        query: dict[str, Any] = {"shop": shop}
        if match_type is not None:
            query["match_type"] = match_type.value
        if active_only:
            query["is_active"] = True
        cursor = self._col.find(query).sort(RULE_SORT)
        docs = await cursor.to_list(length=None)
        return parse_rule_documents(docs, shop=shop)

    async def get(self, shop: str, rule_id: str) -> Optional[RuleDoc]:
        oid = to_object_id(rule_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid, "shop": shop})
        return RuleDoc.from_mongo(doc)

    async def insert(self, rule: RuleDoc) -> RuleDoc:
        result = await self._col.insert_one(rule.to_mongo())
        return rule.model_copy(update={"id": result.inserted_id})

    async def update(
        self, shop: str, rule_id: str, fields: dict[str, Any], now: datetime
    ) -> Optional[RuleDoc]:
        oid = to_object_id(rule_id)
        if oid is None:
            return None
        doc = await self._col.find_one_and_update(
            {"_id": oid, "shop": shop},
            {"$set": {**fields, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return RuleDoc.from_mongo(doc)

    async def delete(self, shop: str, rule_id: str) -> bool:
        oid = to_object_id(rule_id)
        if oid is None:
            return False
        result = await self._col.delete_one({"_id": oid, "shop": shop})
        return result.deleted_count > 0

    async def delete_many(self, shop: str, rule_ids: Iterable[str]) -> int:
        oids = [oid for oid in map(to_object_id, rule_ids) if oid is not None]
        if not oids:
            return 0
        result = await self._col.delete_many({"_id": {"$in": oids}, "shop": shop})
        return result.deleted_count
