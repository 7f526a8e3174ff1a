"""Tests for the health summary cache."""

import pytest
from unittest.mock import AsyncMock

from pulsewatch.config import RedisConfig
from pulsewatch.core.cache import HealthCache
from pulsewatch.models.enums import EndpointStatus
from pulsewatch.schemas.health import HealthSummary


def summary(endpoint_id: str = "ep-1") -> HealthSummary:
    return HealthSummary(
        endpoint_id=endpoint_id,
        status=EndpointStatus.HEALTHY,
        reliability_score=99,
        current_latency_ms=85.0,
        baseline_latency_ms=90.0,
        error_rate=0.01,
        uptime_percentage=99.0,
    )


@pytest.mark.unit
class TestInMemoryCache:

    async def test_put_and_get(self):
        cache = HealthCache()
        await cache.put("ep-1", summary())

        assert await cache.get("ep-1") == summary()
        assert await cache.get("ep-2") is None

    async def test_expired_entry_is_dropped(self):
        cache = HealthCache()
        await cache.put("ep-1", summary(), ttl_seconds=0)

        assert await cache.get("ep-1") is None

    async def test_ping_without_redis(self):
        assert await HealthCache().ping() is True

    def test_disabled_redis_config_uses_memory(self):
        assert HealthCache.from_config(RedisConfig(enabled=False)).redis_client is None


@pytest.mark.unit
class TestRedisCache:

    async def test_put_sets_key_with_ttl(self):
        client = AsyncMock()
        cache = HealthCache(client)

        await cache.put("ep-1", summary(), ttl_seconds=120)

        client.set.assert_awaited_once_with("health:ep-1", summary().model_dump_json(), ex=120)

    async def test_get_reads_from_redis(self):
        client = AsyncMock()
        client.get.return_value = summary().model_dump_json()
        cache = HealthCache(client)

        assert await cache.get("ep-1") == summary()
        client.get.assert_awaited_once_with("health:ep-1")

    async def test_falls_back_to_memory_when_redis_fails(self):
        client = AsyncMock()
        client.set.side_effect = ConnectionError("redis down")
        client.get.side_effect = ConnectionError("redis down")
        cache = HealthCache(client)

        await cache.put("ep-1", summary())

        assert await cache.get("ep-1") == summary()

    async def test_unreadable_payload_is_a_miss(self):
        client = AsyncMock()
        client.get.return_value = "{not json"

        assert await HealthCache(client).get("ep-1") is None

    async def test_ping_and_close(self):
        client = AsyncMock()
        client.ping.return_value = True
        cache = HealthCache(client)

        assert await cache.ping() is True

        client.ping.side_effect = ConnectionError("gone")
        assert await cache.ping() is False

        await cache.close()
        client.aclose.assert_awaited_once()
        assert cache.redis_client is None
