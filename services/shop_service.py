"""Uninstall purge: removes every shop-scoped document and the cached snapshot."""

from __future__ import annotations

import asyncio

from infrastructure.cache.shop_config_cache import ShopConfigCache
from repositories.base import BaseRepository
from shared.logging import get_logger

log = get_logger(__name__)


class ShopService:
    def __init__(self, repositories: list[BaseRepository], cache: ShopConfigCache) -> None:
        self._repositories = repositories
        self._cache = cache

    async def purge(self, shop: str) -> dict[str, int]:
        counts = await asyncio.gather(
            *(repo.delete_for_shop(shop) for repo in self._repositories)
        )
        await self._cache.invalidate(shop)
        deleted = {
            repo.collection_name: count
            for repo, count in zip(self._repositories, counts)
        }
        log.info("shop_data_purged", shop=shop, deleted=deleted)
        return deleted
