"""GeoLite2-Country database downloader.

Runs at startup: when a MaxMind license key is configured and the local
database is missing or older than the configured age, the tarball is
downloaded, the .mmdb member extracted next to the target and atomically
moved into place. Any failure is logged and the existing file (if any) is
kept; the service keeps serving with "unknown country" at worst.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tarfile
import tempfile
import time
from pathlib import Path
from typing import Optional

import httpx

from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

SECONDS_PER_DAY = 86400


class GeoIPUpdater:
    def __init__(
        self,
        db_path: str,
        license_key: str,
        download_url: str,
        http_client: HttpClient,
        max_age_days: int = 7,
    ) -> None:
        self._db_path = Path(db_path)
        self._license_key = license_key
        self._download_url = download_url
        self._http = http_client
        self._max_age_days = max_age_days

    def needs_update(self, now: Optional[float] = None) -> bool:
        if not self._db_path.exists():
            return True
        now = time.time() if now is None else now
        age_seconds = now - self._db_path.stat().st_mtime
        return age_seconds > self._max_age_days * SECONDS_PER_DAY

    async def update_if_needed(self) -> bool:
        """Download a fresh database when needed. Returns True if it was replaced."""
        if not self._license_key:
            log.info("geoip_update_skipped", reason="no_license_key")
            return False
        if not self.needs_update():
            return False
        return await self.update()

    async def update(self) -> bool:
        url = self._download_url.format(license_key=self._license_key)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(dir=self._db_path.parent, prefix=".geoip-"))
        try:
            archive = workdir / "geoip.tar.gz"
            size = await self._http.download(url, archive)
            extracted = await asyncio.to_thread(_extract_mmdb, archive, workdir)
            if extracted is None:
                log.error("geoip_update_failed", reason="mmdb_not_in_archive")
                return False
            os.replace(extracted, self._db_path)
            log.info("geoip_update_completed", path=str(self._db_path), bytes=size)
            return True
        except (httpx.HTTPError, tarfile.TarError, OSError) as e:
            log.error(
                "geoip_update_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        finally:
            shutil.rmtree(workdir, ignore_errors=True)


def _extract_mmdb(archive: Path, workdir: Path) -> Optional[Path]:
    """Extract the first .mmdb member of *archive* into *workdir*."""
    with tarfile.open(archive, "r:gz") as tar:
        for member in tar.getmembers():
            if member.isfile() and member.name.endswith(".mmdb"):
                source = tar.extractfile(member)
                if source is None:
                    continue
                target = workdir / Path(member.name).name
                with source, target.open("wb") as fh:
                    shutil.copyfileobj(source, fh)
                return target
    return None
