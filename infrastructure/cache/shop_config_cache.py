"""Per-shop configuration snapshot cache in Redis.

Stores the shop's settings and ordered rule list as JSON (not pickle) so
cache entries are debuggable and safe to deserialise across versions.
Entries are short-lived and explicitly invalidated on every admin write.
Every Redis error degrades to a cache miss.
"""

import json
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as aioredis

from schemas.models.rule import RuleDoc, parse_rule_documents
from schemas.models.settings import SettingsDoc
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass
class ShopSnapshot:
    """Everything the resolver needs from storage for one shop."""

    settings: Optional[SettingsDoc]
    rules: list[RuleDoc] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(
            {
                "settings": self.settings.model_dump(mode="json", by_alias=True)
                if self.settings
                else None,
                "rules": [r.model_dump(mode="json", by_alias=True) for r in self.rules],
            }
        )

    @classmethod
    def from_json(cls, raw: str, *, shop: str) -> "ShopSnapshot":
        data = json.loads(raw)
        settings = data.get("settings")
        return cls(
            settings=SettingsDoc.model_validate(settings) if settings else None,
            rules=parse_rule_documents(data.get("rules", []), shop=shop),
        )


class ShopConfigCache:
    def __init__(
        self, redis_client: Optional[aioredis.Redis], ttl_seconds: int = 60
    ) -> None:
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds

    def _key(self, shop: str) -> str:
        return f"shop_config:{shop}"

    async def get(self, shop: str) -> Optional[ShopSnapshot]:
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(self._key(shop))
            if raw is None:
                return None
            return ShopSnapshot.from_json(raw, shop=shop)
        except Exception as e:
            log.warning("shop_config_cache_get_error", shop=shop, error=str(e))
            return None

    async def set(self, shop: str, snapshot: ShopSnapshot) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.setex(self._key(shop), self.ttl_seconds, snapshot.to_json())
        except Exception as e:
            log.error("shop_config_cache_set_error", shop=shop, error=str(e))

    async def invalidate(self, shop: str) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(self._key(shop))
            log.info("shop_config_cache_invalidated", shop=shop)
        except Exception as e:
            log.error("shop_config_cache_invalidate_error", shop=shop, error=str(e))
