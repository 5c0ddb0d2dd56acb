"""
Weather package.

Read-through Redis cache in front of the Visual Crossing Timeline API.
The location string is the cache key (weather:{location}), entries expire
after the deployment-wide CACHE_EXPIRATION.
"""

from services.weather_proxy.weather.cache import WeatherCache
from services.weather_proxy.weather.resolver import CacheOutcome, ResolvedWeather, WeatherResolver
from services.weather_proxy.weather.upstream import UpstreamClient

__all__ = ["WeatherCache", "UpstreamClient", "WeatherResolver", "ResolvedWeather", "CacheOutcome"]
