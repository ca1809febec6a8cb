"""Async GeoIP country resolver around the synchronous geoip2 library.

geoip2 reads from a local .mmdb file and is CPU-bound/IO-bound sync.
Calls are wrapped in asyncio.to_thread() to avoid blocking the event loop.

- Returns "" (unknown country) when the database is missing or lookup fails.
- Lazy-loads the reader at most once (double-checked locking with asyncio.Lock).
  reload() lets the updater swap in a freshly downloaded database.
"""

import asyncio
from typing import Optional

import geoip2.database
import geoip2.errors
import maxminddb

from shared.logging import get_logger

log = get_logger(__name__)

UNKNOWN_COUNTRY = ""


class GeoIPService:
    def __init__(self, country_db_path: str) -> None:
        self._country_db_path = country_db_path
        self._country_reader: Optional[geoip2.database.Reader] = None
        self._country_loaded = False
        self._lock = asyncio.Lock()

    @property
    def available(self) -> bool:
        return self._country_reader is not None

    async def _get_country_reader(self) -> Optional[geoip2.database.Reader]:
        if not self._country_loaded:
            async with self._lock:
                if not self._country_loaded:
                    try:
                        self._country_reader = await asyncio.to_thread(
                            geoip2.database.Reader, self._country_db_path
                        )
                        log.info("geoip_country_db_loaded", path=self._country_db_path)
                    except (OSError, maxminddb.InvalidDatabaseError) as e:
                        log.warning(
                            "geoip_country_db_unavailable",
                            path=self._country_db_path,
                            error=str(e),
                            error_type=type(e).__name__,
                        )
                        self._country_reader = None
                    self._country_loaded = True
        return self._country_reader

    async def ensure_loaded(self) -> bool:
        """Open the database if it has not been tried yet; True when usable."""
        return await self._get_country_reader() is not None

    async def get_country_code(self, ip_address: str) -> str:
        """ISO-3166-1 alpha-2 code for *ip_address*, or "" when unknown."""
        reader = await self._get_country_reader()
        if reader is None or not ip_address:
            return UNKNOWN_COUNTRY
        try:
            result = await asyncio.to_thread(reader.country, ip_address)
            return result.country.iso_code or UNKNOWN_COUNTRY
        except (
            geoip2.errors.AddressNotFoundError,
            ValueError,
            maxminddb.InvalidDatabaseError,
        ):
            return UNKNOWN_COUNTRY

    async def reload(self) -> None:
        """Drop the current reader so the next lookup reopens the database file."""
        async with self._lock:
            reader = self._country_reader
            self._country_reader = None
            self._country_loaded = False
        if reader is not None:
            await asyncio.to_thread(reader.close)

    async def close(self) -> None:
        async with self._lock:
            reader = self._country_reader
            self._country_reader = None
        if reader is not None:
            await asyncio.to_thread(reader.close)
