"""
WeatherResolver — cache-aside orchestration over WeatherCache + UpstreamClient.

Per request:

  lookup  weather:{location}
    absent        -> fetch upstream -> populate -> serve        (MISS)
    found, valid  -> serve stored payload unchanged             (HIT)
    found, junk   -> fetch upstream -> populate -> serve        (REFRESHED)
    Redis down    -> CacheInfrastructureError                   (no upstream call)

  fetch fails     -> UpstreamError, nothing written
  populate fails  -> logged, fresh payload still served

Concurrent misses for the same location each fetch and overwrite the entry
(last write wins) unless coalesce_misses is on, in which case misses inside
this process share one in-flight fetch. That fetch runs as its own task, so a
cancelled request only stops waiting for it.
"""

from __future__ import annotations

import asyncio
import enum
import functools
import logging
from dataclasses import dataclass
from typing import Any

from services.weather_proxy.errors import (
    CacheCorruptionError,
    CacheInfrastructureError,
    InvalidLocationError,
)
from services.weather_proxy.weather.cache import (
    WeatherCache,
    cache_key,
    decode_payload,
    encode_payload,
)
from services.weather_proxy.weather.upstream import UpstreamClient

logger = logging.getLogger(__name__)


class CacheOutcome(str, enum.Enum):
    HIT = "hit"
    MISS = "miss"
    REFRESHED = "refreshed"


@dataclass(frozen=True)
class ResolvedWeather:
    """Payload plus where it came from. The source is for observability only."""
    payload: dict[str, Any]
    source: CacheOutcome


class WeatherResolver:
    """
    Usage:
        resolver = WeatherResolver(cache=WeatherCache(redis, ttl), upstream=UpstreamClient(...))
        result = await resolver.resolve("London")
        return result.payload
    """

    def __init__(
        self,
        cache: WeatherCache,
        upstream: UpstreamClient,
        coalesce_misses: bool = False,
    ) -> None:
        self._cache = cache
        self._upstream = upstream
        self._coalesce = coalesce_misses
        self._inflight: dict[str, asyncio.Task] = {}

    async def resolve(self, location: str) -> ResolvedWeather:
        if not location:
            raise InvalidLocationError()

        key = cache_key(location)

        # CacheInfrastructureError propagates: an outage is not a miss
        try:
            raw = await self._cache.get(key)
            payload = decode_payload(raw) if raw is not None else None
        except CacheCorruptionError:
            logger.warning(
                "Error unmarshaling cached data for key=%s, refetching", key, exc_info=True
            )
            payload = await self._fetch(location, key)
            return ResolvedWeather(payload, CacheOutcome.REFRESHED)

        if payload is None:
            payload = await self._fetch(location, key)
            logger.info("Fetched fresh weather data for location: %s", location)
            return ResolvedWeather(payload, CacheOutcome.MISS)

        logger.info("Serving cached weather data for location: %s", location)
        return ResolvedWeather(payload, CacheOutcome.HIT)

    async def _fetch(self, location: str, key: str) -> dict[str, Any]:
        if not self._coalesce:
            return await self._fetch_and_populate(location, key)

        # No await between lookup and insert, so the check-then-set is atomic
        task = self._inflight.get(key)
        if task is None:
            # Owned by the resolver, not by the request that started it
            task = asyncio.ensure_future(self._fetch_and_populate(location, key))
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._settle, key))
        else:
            logger.debug("Joining in-flight weather fetch for key=%s", key)

        # A cancelled caller stops waiting; the shared fetch keeps running for the rest
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark retrieved so a failure nobody waited for does not warn at GC
            task.exception()

    async def _fetch_and_populate(self, location: str, key: str) -> dict[str, Any]:
        # UpstreamError propagates; nothing is written on failure
        payload = await self._upstream.fetch(location)
        await self._populate(key, payload)
        return payload

    async def _populate(self, key: str, payload: dict[str, Any]) -> None:
        try:
            value = encode_payload(payload)
        except (TypeError, ValueError):
            logger.warning("Error marshaling weather data for key=%s", key, exc_info=True)
            return

        try:
            await self._cache.set(key, value)
        except CacheInfrastructureError:
            logger.warning("Error caching weather data for key=%s", key, exc_info=True)
