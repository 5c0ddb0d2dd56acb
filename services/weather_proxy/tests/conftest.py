"""
Shared test fixtures for the weather proxy test suite.

Provides:
- Settings built explicitly (no dependence on the developer's .env)
- dict-backed FakeRedis with a manual clock
- FakeProvider behind httpx.MockTransport in place of Visual Crossing
- async FastAPI test client with the lifespan-created state injected
"""

import os

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("VISUAL_CROSSING_API_KEY", "test-key")
os.environ.setdefault("VISUAL_CROSSING_API_URL", "https://weather.test/timeline")
os.environ.setdefault("REDIS_URL", "redis://localhost:26379/0")
os.environ.setdefault("SENTRY_DSN", "")

from services.weather_proxy.config import Settings  # noqa: E402
from services.weather_proxy.tests.helpers.fake_provider import FakeProvider  # noqa: E402
from services.weather_proxy.tests.helpers.fake_redis import FakeRedis  # noqa: E402
from services.weather_proxy.weather import UpstreamClient, WeatherCache, WeatherResolver  # noqa: E402

BASE_URL = "https://weather.test/timeline"
API_KEY = "K"
TTL_SECONDS = 43200


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        visual_crossing_api_key=API_KEY,
        visual_crossing_api_url=BASE_URL,
        cache_expiration=TTL_SECONDS,
        rate_limit_enabled=False,
        sentry_dsn="",
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
async def http_client(provider):
    async with httpx.AsyncClient(transport=provider.transport()) as client:
        yield client


@pytest.fixture
def weather_cache(fake_redis):
    return WeatherCache(fake_redis, ttl_seconds=TTL_SECONDS)


@pytest.fixture
def upstream(http_client):
    return UpstreamClient(http_client, base_url=BASE_URL, api_key=API_KEY)


@pytest.fixture
def resolver(weather_cache, upstream):
    return WeatherResolver(cache=weather_cache, upstream=upstream)


@pytest.fixture
def app(settings, fake_redis, http_client, weather_cache, resolver):
    """Create a test FastAPI app with the lifespan state injected directly."""
    from services.weather_proxy.main import create_app

    _app = create_app(settings)
    _app.state.redis = fake_redis
    _app.state.http = http_client
    _app.state.weather_cache = weather_cache
    _app.state.weather_resolver = resolver
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
