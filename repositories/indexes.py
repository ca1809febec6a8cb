"""MongoDB index setup, run once from the app lifespan."""

from __future__ import annotations

from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from shared.logging import get_logger

log = get_logger(__name__)


async def ensure_indexes(db: AsyncDatabase) -> None:
    try:
        await db["rules"].create_index(
            [("shop", ASCENDING), ("priority", DESCENDING), ("created_at", ASCENDING)]
        )
        await db["rules"].create_index([("shop", ASCENDING), ("match_type", ASCENDING)])

        await db["settings"].create_index([("shop", ASCENDING)], unique=True)

        await db["monthly_usage"].create_index(
            [("shop", ASCENDING), ("year_month", ASCENDING)], unique=True
        )

        await db["analytics_country"].create_index(
            [("shop", ASCENDING), ("date", ASCENDING), ("country_code", ASCENDING)],
            unique=True,
        )
        await db["analytics_rule"].create_index(
            [("shop", ASCENDING), ("date", ASCENDING), ("rule_id", ASCENDING)],
            unique=True,
        )

        await db["visitor_logs"].create_index([("shop", ASCENDING), ("timestamp", DESCENDING)])
        await db["visitor_logs"].create_index([("timestamp", ASCENDING)])
    except PyMongoError as e:
        log.error("ensure_indexes_failed", error=str(e), error_type=type(e).__name__)
