"""
Daily analytics counters and the visitor log.

Counters are upserted with $inc so concurrent storefront events never lose
updates. The visitor log is append-only and trimmed by the retention sweep.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from repositories.base import BaseRepository
from schemas.models.analytics import VisitorLogDoc


class CountryStatsRepository(BaseRepository):
    collection_name = "analytics_country"

    async def increment(
        self, shop: str, date: datetime, country_code: str, counters: dict[str, int]
    ) -> None:
        if not counters:
            return
        await self._col.update_one(
            {"shop": shop, "date": date, "country_code": country_code},
            {"$inc": counters},
            upsert=True,
        )


class RuleStatsRepository(BaseRepository):
    collection_name = "analytics_rule"

    async def increment(
        self,
        shop: str,
        date: datetime,
        rule_id: str,
        rule_name: Optional[str],
        counters: dict[str, int],
    ) -> None:
        if not counters:
            return
        update: dict = {"$inc": counters}
        if rule_name:
            update["$set"] = {"rule_name": rule_name}
        else:
            update["$setOnInsert"] = {"rule_name": "Unknown Rule"}
        await self._col.update_one(
            {"shop": shop, "date": date, "rule_id": rule_id},
            update,
            upsert=True,
        )


class VisitorLogRepository(BaseRepository):
    collection_name = "visitor_logs"

    async def insert(self, entry: VisitorLogDoc) -> None:
        await self._col.insert_one(entry.to_mongo())

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self._col.delete_many({"timestamp": {"$lt": cutoff}})
        return result.deleted_count
