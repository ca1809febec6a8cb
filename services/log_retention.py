"""Visitor-log retention sweep.

Deletes visitor logs older than the retention window. Triggered lazily from
analytics ingestion and runs at most once per UTC day per process; the "last
run" date lives on this object, which the app lifespan creates once.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional

from pymongo.errors import PyMongoError

from repositories.analytics_repository import VisitorLogRepository
from shared.datetime_utils import Clock, as_utc, days_ago, utc_now
from shared.logging import get_logger

log = get_logger(__name__)


class LogRetention:
    def __init__(
        self,
        visitor_logs: VisitorLogRepository,
        retention_days: int = 30,
        clock: Clock = utc_now,
    ) -> None:
        self._visitor_logs = visitor_logs
        self.retention_days = retention_days
        self._clock = clock
        self._last_run_date: Optional[date] = None
        self._lock = asyncio.Lock()

    @property
    def last_run_date(self) -> Optional[date]:
        return self._last_run_date

    async def maybe_run(self) -> Optional[int]:
        """Run the sweep unless it already succeeded today.

        Returns the number of deleted logs, or None when skipped or failed.
        """
        now = self._clock()
        today = as_utc(now).date()
        if self._last_run_date == today or self._lock.locked():
            return None

        async with self._lock:
            if self._last_run_date == today:
                return None
            cutoff = days_ago(now, self.retention_days)
            try:
                deleted = await self._visitor_logs.delete_older_than(cutoff)
            except PyMongoError as e:
                log.warning(
                    "visitor_log_cleanup_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None
            self._last_run_date = today

        if deleted:
            log.info(
                "visitor_log_cleanup",
                deleted=deleted,
                retention_days=self.retention_days,
            )
        return deleted
