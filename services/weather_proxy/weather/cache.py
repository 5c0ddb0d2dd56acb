"""
Weather cache — Redis-backed, keyed per location.

Cache key format:  weather:{location}
TTL:               fixed per deployment (CACHE_EXPIRATION, default 12 hours)

The location is used byte-for-byte: "London" and "london" are distinct keys.
No slugging or case folding, since the provider's location syntax is
free-form and two spellings may legitimately resolve differently upstream.

The raw provider JSON is cached verbatim so a hit returns exactly what the
original miss returned.

Failure semantics:
  - key absent          -> get() returns None (normal miss)
  - Redis unreachable   -> CacheInfrastructureError (never reported as a miss)
  - undecodable value   -> CacheCorruptionError from decode_payload(), or from
                           get() when the client decodes replies itself
"""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.exceptions import RedisError

from services.weather_proxy.errors import CacheCorruptionError, CacheInfrastructureError

logger = logging.getLogger(__name__)

KEY_PREFIX = "weather:"


def cache_key(location: str) -> str:
    """Build the Redis key for a location."""
    return KEY_PREFIX + location


def encode_payload(payload: dict[str, Any]) -> str:
    """Serialize a provider payload for storage. Raises TypeError/ValueError if not JSON-safe."""
    return json.dumps(payload, ensure_ascii=False, allow_nan=False)


def decode_payload(raw: str | bytes) -> dict[str, Any]:
    """Deserialize a cached value back into a payload mapping."""
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        value = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise CacheCorruptionError(f"cached value is not valid JSON: {exc}") from exc

    if not isinstance(value, dict):
        raise CacheCorruptionError(
            f"cached value is a JSON {type(value).__name__}, expected an object"
        )
    return value


class WeatherCache:
    """
    Redis-backed weather cache.

    Usage:
        cache = WeatherCache(redis_client, ttl_seconds=settings.cache_expiration)
        raw = await cache.get(cache_key("London"))
        if raw is None:
            payload = await upstream.fetch("London")
            await cache.set(cache_key("London"), encode_payload(payload))
    """

    def __init__(self, redis, ttl_seconds: int) -> None:
        """
        Args:
            redis:       An async Redis client (redis.asyncio compatible),
                         shared process-wide.
            ttl_seconds: Expiry applied to every entry written.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._redis = redis
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def get(self, key: str) -> str | bytes | None:
        """Return the stored value for key, or None if absent."""
        try:
            raw = await self._redis.get(key)
        except (RedisError, OSError) as exc:
            logger.warning("Weather cache GET failed for key=%s", key, exc_info=True)
            raise CacheInfrastructureError(f"cache lookup failed for {key!r}: {exc}") from exc
        except UnicodeDecodeError as exc:
            # A client built with decode_responses=True decodes the reply itself
            raise CacheCorruptionError(f"cached value for {key!r} is not valid UTF-8") from exc

        if raw is None:
            logger.debug("Weather cache miss: %s", key)
        else:
            logger.debug("Weather cache hit: %s", key)
        return raw

    async def set(self, key: str, value: str) -> None:
        """Write value under key, replacing any existing entry and resetting its TTL."""
        try:
            await self._redis.set(key, value, ex=self._ttl)
        except (RedisError, OSError) as exc:
            raise CacheInfrastructureError(f"cache write failed for {key!r}: {exc}") from exc
        logger.debug("Weather cached: key=%s ttl=%ds", key, self._ttl)

    async def ping(self) -> bool:
        """Return True if Redis answers PING."""
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError):
            logger.warning("Weather cache PING failed", exc_info=True)
            return False
