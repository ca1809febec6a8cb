"""Unit tests for the infrastructure layer."""

import io
import json
import os
import tarfile
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import geoip2.errors
import httpx
import pytest
from pymongo.errors import ServerSelectionTimeoutError
from redis.exceptions import ConnectionError as RedisConnectionError

from infrastructure.billing.shopify import ShopifyBillingProvider, find_usage_line_item
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.cache.shop_config_cache import ShopConfigCache, ShopSnapshot
from infrastructure.geoip import GeoIPService
from infrastructure.geoip_updater import GeoIPUpdater
from infrastructure.http_client import HttpClient
from schemas.models.enums import MatchType, Mode
from schemas.models.rule import RuleDoc
from schemas.models.session import ShopSessionDoc
from schemas.models.settings import SettingsDoc

SHOP = "demo.myshopify.com"


# ── Helpers ───────────────────────────────────────────────────────────────────


def _snapshot() -> ShopSnapshot:
    return ShopSnapshot(
        settings=SettingsDoc(shop=SHOP, mode=Mode.AUTO_REDIRECT, excluded_ips=["9.9.9.9"]),
        rules=[
            RuleDoc(
                _id="65f000000000000000000001",
                shop=SHOP,
                country_codes=["DE"],
                target_url="https://example.de",
                priority=3,
            ),
            RuleDoc(
                _id="65f000000000000000000002",
                shop=SHOP,
                match_type=MatchType.IP,
                ip_addresses=["1.1.1.1", "2.2.2.0/24"],
            ),
        ],
    )


def _fake_redis(get_returns=None):
    """Return a mock async Redis client."""
    r = AsyncMock()
    r.get.return_value = get_returns
    r.setex.return_value = True
    r.delete.return_value = 1
    return r


def _response(status_code: int, payload: dict) -> MagicMock:
    resp = MagicMock(status_code=status_code)
    resp.json.return_value = payload
    resp.text = json.dumps(payload)
    return resp


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post("http://example.com")
        assert resp.status_code == 200
        await client.aclose()

    async def test_get_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "get", return_value=fake_resp)
        resp = await client.get("http://example.com")
        assert resp.status_code == 200
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(client._client, "post", side_effect=Exception("timeout"))
        with pytest.raises(Exception, match="timeout"):
            await client.post("http://example.com")
        await client.aclose()

    async def test_download_streams_to_file(self, tmp_path):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"abc123"))
        client = HttpClient()
        client._client = httpx.AsyncClient(transport=transport)
        target = tmp_path / "out.bin"
        assert await client.download("http://example.com/file", target) == 6
        assert target.read_bytes() == b"abc123"
        await client.aclose()

    async def test_download_raises_on_error_status(self, tmp_path):
        transport = httpx.MockTransport(lambda request: httpx.Response(401))
        client = HttpClient()
        client._client = httpx.AsyncClient(transport=transport)
        with pytest.raises(httpx.HTTPStatusError):
            await client.download("http://example.com/file", tmp_path / "out.bin")
        await client.aclose()

    async def test_context_manager(self):
        async with HttpClient() as client:
            assert client is not None


# ── ShopConfigCache ───────────────────────────────────────────────────────────


class TestShopSnapshot:
    def test_json_round_trip(self):
        snap = _snapshot()
        restored = ShopSnapshot.from_json(snap.to_json(), shop=SHOP)
        assert restored.settings.mode == Mode.AUTO_REDIRECT
        assert restored.settings.excluded_ips == ["9.9.9.9"]
        assert [r.rule_id for r in restored.rules] == [r.rule_id for r in snap.rules]
        assert restored.rules[1].ip_addresses == ["1.1.1.1", "2.2.2.0/24"]

    def test_missing_settings_round_trip(self):
        restored = ShopSnapshot.from_json(ShopSnapshot(settings=None).to_json(), shop=SHOP)
        assert restored.settings is None
        assert restored.rules == []

    def test_invalid_rule_dropped(self):
        raw = json.dumps(
            {
                "settings": None,
                "rules": [
                    {"_id": "65f000000000000000000001", "shop": SHOP, "country_codes": ["DE"]},
                    {"_id": "65f000000000000000000002", "shop": SHOP, "rule_type": "Redirect"},
                ],
            }
        )
        restored = ShopSnapshot.from_json(raw, shop=SHOP)
        assert [r.rule_id for r in restored.rules] == ["65f000000000000000000001"]


class TestShopConfigCache:
    async def test_get_returns_none_when_redis_none(self):
        assert await ShopConfigCache(redis_client=None).get(SHOP) is None

    async def test_get_returns_snapshot_on_hit(self):
        r = _fake_redis(get_returns=_snapshot().to_json())
        result = await ShopConfigCache(r).get(SHOP)
        assert result is not None
        assert len(result.rules) == 2
        r.get.assert_called_once_with(f"shop_config:{SHOP}")

    async def test_get_returns_none_on_miss(self):
        assert await ShopConfigCache(_fake_redis()).get(SHOP) is None

    async def test_get_degrades_to_miss_on_error(self):
        r = _fake_redis()
        r.get.side_effect = RedisConnectionError("down")
        assert await ShopConfigCache(r).get(SHOP) is None

    async def test_get_degrades_to_miss_on_corrupt_entry(self):
        assert await ShopConfigCache(_fake_redis(get_returns="{not json")).get(SHOP) is None

    async def test_set_calls_setex_with_ttl(self):
        r = _fake_redis()
        await ShopConfigCache(r, ttl_seconds=60).set(SHOP, _snapshot())
        key, ttl, payload = r.setex.call_args[0]
        assert key == f"shop_config:{SHOP}"
        assert ttl == 60
        assert json.loads(payload)["settings"]["shop"] == SHOP

    async def test_set_swallows_errors(self):
        r = _fake_redis()
        r.setex.side_effect = RedisConnectionError("down")
        await ShopConfigCache(r).set(SHOP, _snapshot())  # must not raise

    async def test_invalidate_deletes_key(self):
        r = _fake_redis()
        await ShopConfigCache(r).invalidate(SHOP)
        r.delete.assert_called_once_with(f"shop_config:{SHOP}")

    async def test_noops_when_redis_none(self):
        cache = ShopConfigCache(redis_client=None)
        await cache.set(SHOP, _snapshot())
        await cache.invalidate(SHOP)


# ── Redis client factory ──────────────────────────────────────────────────────


class TestCreateRedisClient:
    async def test_none_when_not_configured(self):
        assert await create_redis_client(None) is None

    async def test_none_when_ping_fails(self, mocker):
        fake = AsyncMock()
        fake.ping.side_effect = RedisConnectionError("refused")
        mocker.patch("infrastructure.cache.redis_client.aioredis.from_url", return_value=fake)
        assert await create_redis_client("redis://localhost:6379") is None
        fake.aclose.assert_awaited_once()

    async def test_client_when_ping_ok(self, mocker):
        fake = AsyncMock()
        mocker.patch("infrastructure.cache.redis_client.aioredis.from_url", return_value=fake)
        assert await create_redis_client("redis://localhost:6379") is fake


# ── GeoIPService ──────────────────────────────────────────────────────────────


class TestGeoIPService:
    async def test_unknown_when_db_missing(self):
        svc = GeoIPService("nonexistent.mmdb")
        assert await svc.get_country_code("1.2.3.4") == ""
        assert svc.available is False
        assert await svc.ensure_loaded() is False

    async def test_returns_iso_code(self):
        svc = GeoIPService("nonexistent.mmdb")
        fake_reader = MagicMock()
        fake_reader.country.return_value = MagicMock(country=MagicMock(iso_code="DE"))
        svc._country_reader = fake_reader
        svc._country_loaded = True
        assert await svc.get_country_code("1.2.3.4") == "DE"

    async def test_unknown_on_lookup_error(self):
        svc = GeoIPService("nonexistent.mmdb")
        fake_reader = MagicMock()
        fake_reader.country.side_effect = geoip2.errors.AddressNotFoundError("not found")
        svc._country_reader = fake_reader
        svc._country_loaded = True
        assert await svc.get_country_code("1.2.3.4") == ""

    async def test_unknown_on_bad_address(self):
        svc = GeoIPService("nonexistent.mmdb")
        fake_reader = MagicMock()
        fake_reader.country.side_effect = ValueError("not an ip")
        svc._country_reader = fake_reader
        svc._country_loaded = True
        assert await svc.get_country_code("garbage") == ""

    async def test_reader_opened_once(self, mocker):
        opener = mocker.patch("infrastructure.geoip.geoip2.database.Reader", side_effect=OSError)
        svc = GeoIPService("nonexistent.mmdb")
        await svc.get_country_code("1.2.3.4")
        await svc.get_country_code("1.2.3.4")
        assert opener.call_count == 1

    async def test_reload_reopens(self, mocker):
        opener = mocker.patch("infrastructure.geoip.geoip2.database.Reader", side_effect=OSError)
        svc = GeoIPService("nonexistent.mmdb")
        await svc.get_country_code("1.2.3.4")
        await svc.reload()
        await svc.get_country_code("1.2.3.4")
        assert opener.call_count == 2


# ── GeoIPUpdater ──────────────────────────────────────────────────────────────


def _write_tarball(path: Path, member: str = "GeoLite2-Country_20260301/GeoLite2-Country.mmdb"):
    data = b"fake-mmdb-bytes"
    with tarfile.open(path, "w:gz") as tar:
        info = tarfile.TarInfo(member)
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))
    return data


class TestGeoIPUpdater:
    def _updater(self, tmp_path, http, license_key="key", max_age_days=7):
        return GeoIPUpdater(
            db_path=str(tmp_path / "GeoLite2-Country.mmdb"),
            license_key=license_key,
            download_url="https://download.example/?key={license_key}",
            http_client=http,
            max_age_days=max_age_days,
        )

    async def test_skipped_without_license_key(self, tmp_path):
        http = AsyncMock()
        assert await self._updater(tmp_path, http, license_key="").update_if_needed() is False
        http.download.assert_not_called()

    def test_needs_update_when_missing_or_stale(self, tmp_path):
        updater = self._updater(tmp_path, AsyncMock())
        assert updater.needs_update() is True
        db = tmp_path / "GeoLite2-Country.mmdb"
        db.write_bytes(b"x")
        assert updater.needs_update() is False
        stale = time.time() - 8 * 86400
        os.utime(db, (stale, stale))
        assert updater.needs_update() is True

    async def test_downloads_and_replaces(self, tmp_path):
        expected = {}

        async def fake_download(url, destination):
            expected["url"] = url
            expected["data"] = _write_tarball(destination)
            return destination.stat().st_size

        http = AsyncMock()
        http.download.side_effect = fake_download
        assert await self._updater(tmp_path, http).update_if_needed() is True
        assert expected["url"] == "https://download.example/?key=key"
        assert (tmp_path / "GeoLite2-Country.mmdb").read_bytes() == expected["data"]
        assert not [p for p in tmp_path.iterdir() if p.name.startswith(".geoip-")]

    async def test_archive_without_mmdb(self, tmp_path):
        async def fake_download(url, destination):
            _write_tarball(destination, member="README.txt")
            return 1

        http = AsyncMock()
        http.download.side_effect = fake_download
        assert await self._updater(tmp_path, http).update() is False
        assert not (tmp_path / "GeoLite2-Country.mmdb").exists()

    async def test_download_error_keeps_existing_file(self, tmp_path):
        db = tmp_path / "GeoLite2-Country.mmdb"
        db.write_bytes(b"old")
        http = AsyncMock()
        http.download.side_effect = httpx.ConnectError("offline")
        assert await self._updater(tmp_path, http).update() is False
        assert db.read_bytes() == b"old"


# ── ShopifyBillingProvider ────────────────────────────────────────────────────


SUBSCRIPTION_PAYLOAD = {
    "data": {
        "currentAppInstallation": {
            "activeSubscriptions": [
                {
                    "lineItems": [
                        {
                            "id": "gid://shopify/AppSubscriptionLineItem/1",
                            "plan": {"pricingDetails": {"__typename": "AppRecurringPricing"}},
                        },
                        {
                            "id": "gid://shopify/AppSubscriptionLineItem/2",
                            "plan": {"pricingDetails": {"__typename": "AppUsagePricing"}},
                        },
                    ]
                }
            ]
        }
    }
}

USAGE_RECORD_OK = {
    "data": {
        "appUsageRecordCreate": {
            "appUsageRecord": {"id": "gid://shopify/AppUsageRecord/9"},
            "userErrors": [],
        }
    }
}


class TestShopifyBillingProvider:
    def _provider(self, session=True):
        sessions = AsyncMock()
        sessions.get_offline_session.return_value = (
            ShopSessionDoc(_id=f"offline_{SHOP}", shop=SHOP, accessToken="shpat_x")
            if session
            else None
        )
        http = AsyncMock()
        return ShopifyBillingProvider(sessions, http, "2025-01"), http

    def test_find_usage_line_item(self):
        assert find_usage_line_item(SUBSCRIPTION_PAYLOAD) == "gid://shopify/AppSubscriptionLineItem/2"
        assert find_usage_line_item({}) is None

    async def test_creates_usage_record(self):
        provider, http = self._provider()
        http.post.side_effect = [
            _response(200, SUBSCRIPTION_PAYLOAD),
            _response(200, USAGE_RECORD_OK),
        ]
        assert await provider.create_usage_record(SHOP, "Overage", 0.1, "USD") is True

        url = http.post.call_args_list[1][0][0]
        kwargs = http.post.call_args_list[1][1]
        assert url == f"https://{SHOP}/admin/api/2025-01/graphql.json"
        assert kwargs["headers"] == {"X-Shopify-Access-Token": "shpat_x"}
        variables = kwargs["json"]["variables"]
        assert variables["lineItemId"] == "gid://shopify/AppSubscriptionLineItem/2"
        assert variables["price"] == {"amount": 0.1, "currencyCode": "USD"}

    async def test_no_session(self):
        provider, http = self._provider(session=False)
        assert await provider.create_usage_record(SHOP, "Overage", 0.1, "USD") is False
        http.post.assert_not_called()

    async def test_session_lookup_error(self):
        provider, http = self._provider()
        provider._sessions.get_offline_session.side_effect = ServerSelectionTimeoutError(
            "no primary"
        )
        assert await provider.create_usage_record(SHOP, "Overage", 0.1, "USD") is False
        http.post.assert_not_called()

    async def test_no_usage_line_item(self):
        provider, http = self._provider()
        http.post.return_value = _response(200, {"data": {"currentAppInstallation": {}}})
        assert await provider.create_usage_record(SHOP, "Overage", 0.1, "USD") is False
        assert http.post.call_count == 1

    async def test_user_errors_rejected(self):
        provider, http = self._provider()
        http.post.side_effect = [
            _response(200, SUBSCRIPTION_PAYLOAD),
            _response(
                200,
                {
                    "data": {
                        "appUsageRecordCreate": {
                            "appUsageRecord": None,
                            "userErrors": [{"field": "price", "message": "capped"}],
                        }
                    }
                },
            ),
        ]
        assert await provider.create_usage_record(SHOP, "Overage", 0.1, "USD") is False

    async def test_http_error_status(self):
        provider, http = self._provider()
        http.post.return_value = _response(401, {"errors": "unauthorized"})
        assert await provider.create_usage_record(SHOP, "Overage", 0.1, "USD") is False

    async def test_transport_exception_never_raises(self):
        provider, http = self._provider()
        http.post.side_effect = httpx.ConnectError("offline")
        assert await provider.create_usage_record(SHOP, "Overage", 0.1, "USD") is False
