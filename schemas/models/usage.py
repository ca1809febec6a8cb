"""
Monthly usage counter document model.

Maps to the `monthly_usage` MongoDB collection, one document per
(shop, year_month). Counters are only ever changed with atomic $inc
updates; charged_visitors is owned by the overage billing claim.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


class MonthlyUsageDoc(MongoBaseModel):
    """Document model for the `monthly_usage` collection."""

    shop: str
    year_month: str  # "YYYY-MM" (UTC)
    total_visitors: int = Field(default=0, ge=0)
    redirected: int = Field(default=0, ge=0)
    blocked: int = Field(default=0, ge=0)
    charged_visitors: int = Field(default=0, ge=0)

    @classmethod
    def empty(cls, shop: str, year_month: str) -> "MonthlyUsageDoc":
        return cls(shop=shop, year_month=year_month)


def usage_or_empty(
    doc: Optional[MonthlyUsageDoc], shop: str, year_month: str
) -> MonthlyUsageDoc:
    """Return *doc*, or a zeroed counter when the month has no row yet."""
    return doc if doc is not None else MonthlyUsageDoc.empty(shop, year_month)
