"""
Monthly usage counters.

Increments are single atomic upserts. Overage billing claims are
compare-and-swap updates on charged_visitors: a claim only succeeds if the
counter still holds the value the claimant computed its overage from, so two
concurrent billing runs over the same snapshot can never both charge.
"""

from __future__ import annotations

from typing import Optional

from pymongo import DESCENDING

from repositories.base import BaseRepository
from schemas.models.usage import MonthlyUsageDoc


class UsageRepository(BaseRepository):
    collection_name = "monthly_usage"

    async def get(self, shop: str, year_month: str) -> Optional[MonthlyUsageDoc]:
        doc = await self._col.find_one({"shop": shop, "year_month": year_month})
        return MonthlyUsageDoc.from_mongo(doc)

    async def increment(
        self,
        shop: str,
        year_month: str,
        *,
        redirected: int = 0,
        blocked: int = 0,
    ) -> None:
        inc = {"total_visitors": 1}
        if redirected:
            inc["redirected"] = redirected
        if blocked:
            inc["blocked"] = blocked
        await self._col.update_one(
            {"shop": shop, "year_month": year_month},
            {"$inc": inc, "$setOnInsert": {"charged_visitors": 0}},
            upsert=True,
        )

    async def claim_overage(
        self, shop: str, year_month: str, expected_charged: int, visitors: int
    ) -> bool:
        """Atomically add *visitors* to charged_visitors if it still equals *expected_charged*."""
        result = await self._col.update_one(
            {
                "shop": shop,
                "year_month": year_month,
                "charged_visitors": expected_charged,
            },
            {"$inc": {"charged_visitors": visitors}},
        )
        return result.modified_count == 1

    async def release_overage(self, shop: str, year_month: str, visitors: int) -> None:
        """Undo a claim whose charge could not be created."""
        await self._col.update_one(
            {"shop": shop, "year_month": year_month},
            {"$inc": {"charged_visitors": -visitors}},
        )

    async def recent_for_shop(self, shop: str, months: int = 6) -> list[MonthlyUsageDoc]:
        cursor = self._col.find({"shop": shop}).sort("year_month", DESCENDING).limit(months)
        docs = await cursor.to_list(length=None)
        return [MonthlyUsageDoc.from_mongo(doc) for doc in docs]
