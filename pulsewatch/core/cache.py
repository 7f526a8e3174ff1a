"""Health summary cache backed by Redis with an in-memory fallback."""

import time
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from pydantic import ValidationError

from pulsewatch.config import RedisConfig
from pulsewatch.schemas.health import HealthSummary
from pulsewatch.utils.logger import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "health:"
DEFAULT_TTL_SECONDS = 300


class HealthCache:
    """
    Key-value cache for :class:`HealthSummary` values with per-entry TTL.

    Summaries are stored as JSON under ``health:<endpoint_id>``. When Redis is
    disabled or a Redis call fails the in-process store is used instead, so
    a cache outage never fails a probe round.

    Example:
        ```python
        cache = HealthCache.from_config(config.redis)
        await cache.put(summary.endpoint_id, summary, ttl_seconds=300)
        cached = await cache.get(summary.endpoint_id)
        ```
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        """
        Initialize health cache.

        Args:
            redis_client: Redis client, or None for in-memory only
        """
        self.redis_client = redis_client
        self._memory: Dict[str, Tuple[float, str]] = {}

    @classmethod
    def from_config(cls, config: RedisConfig) -> "HealthCache":
        """Build a cache from the Redis section of the configuration."""
        if not config.enabled:
            return cls()
        try:
            client = redis.from_url(
                config.url,
                decode_responses=True,
                socket_timeout=config.socket_timeout,
                socket_connect_timeout=config.socket_connect_timeout,
                max_connections=config.max_connections
            )
        except Exception as e:
            logger.error(
                "Failed to create Redis client, falling back to in-memory cache",
                extra={"error": str(e)}
            )
            return cls()
        logger.info("Redis client created for health cache")
        return cls(client)

    @staticmethod
    def _key(endpoint_id: str) -> str:
        return f"{KEY_PREFIX}{endpoint_id}"

    async def put(
        self,
        endpoint_id: str,
        summary: HealthSummary,
        ttl_seconds: int = DEFAULT_TTL_SECONDS
    ) -> None:
        key = self._key(endpoint_id)
        payload = summary.model_dump_json()

        if self.redis_client is not None:
            try:
                await self.redis_client.set(key, payload, ex=ttl_seconds)
                return
            except Exception as e:
                logger.error(
                    "Redis write failed, caching in memory",
                    extra={"endpoint_id": endpoint_id, "error": str(e)}
                )

        self._memory[key] = (time.monotonic() + ttl_seconds, payload)

    async def get(self, endpoint_id: str) -> Optional[HealthSummary]:
        key = self._key(endpoint_id)
        payload: Optional[str] = None

        if self.redis_client is not None:
            try:
                payload = await self.redis_client.get(key)
            except Exception as e:
                logger.error(
                    "Redis read failed, using in-memory cache",
                    extra={"endpoint_id": endpoint_id, "error": str(e)}
                )

        if payload is None:
            payload = self._get_from_memory(key)
        if payload is None:
            return None

        try:
            return HealthSummary.model_validate_json(payload)
        except ValidationError:
            logger.warning("Discarding unreadable cached health summary", extra={"key": key})
            return None

    def _get_from_memory(self, key: str) -> Optional[str]:
        entry = self._memory.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if time.monotonic() >= expires_at:
            del self._memory[key]
            return None
        return payload

    async def ping(self) -> bool:
        """True if Redis answers, or if the cache is in-memory only."""
        if self.redis_client is None:
            return True
        try:
            return bool(await self.redis_client.ping())
        except Exception as e:
            logger.error("Redis ping failed", extra={"error": str(e)})
            return False

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
