"""
Weather proxy FastAPI service — read-through Redis cache over Visual Crossing.

Entrypoints:
  weather-proxy                                            (console script, reads PORT)
  uvicorn --factory services.weather_proxy.main:create_app --port 8080
"""

import logging
import uuid
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
import uvicorn
from fastapi import FastAPI, Request, Response
from pydantic import ValidationError
from starlette.responses import JSONResponse

from services.weather_proxy.config import Settings, get_settings
from services.weather_proxy.errors import WeatherProxyError
from services.weather_proxy.middleware.rate_limit import RateLimitMiddleware
from services.weather_proxy.middleware.sentry import setup_sentry
from services.weather_proxy.routers import health, weather
from services.weather_proxy.weather import UpstreamClient, WeatherCache, WeatherResolver

logger = logging.getLogger(__name__)


def build_resolver(settings: Settings, cache: WeatherCache, http: httpx.AsyncClient) -> WeatherResolver:
    """Wire the cache-aside resolver from the shared cache and HTTP client."""
    upstream = UpstreamClient(
        http,
        base_url=settings.visual_crossing_api_url,
        api_key=settings.visual_crossing_api_key,
    )
    return WeatherResolver(
        cache=cache,
        upstream=upstream,
        coalesce_misses=settings.weather_coalesce_misses,
    )


def _error_body(request: Request, code: str, message: str) -> dict:
    return {
        "success": False,
        "error": {"code": code, "message": message},
        "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
    }


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle. Redis must answer PING or startup fails."""
        setup_sentry(settings)

        redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=False,
            socket_connect_timeout=settings.redis_timeout_s,
            socket_timeout=settings.redis_timeout_s,
        )
        try:
            await redis_client.ping()
        except Exception:
            await redis_client.aclose()
            logger.critical("Failed to connect to Redis at %s", settings.redis_url)
            raise
        logger.info("Connected to Redis at %s", settings.redis_url)

        http_client = httpx.AsyncClient(timeout=settings.weather_api_timeout_s)
        cache = WeatherCache(redis_client, ttl_seconds=settings.cache_expiration)

        app.state.redis = redis_client
        app.state.http = http_client
        app.state.weather_cache = cache
        app.state.weather_resolver = build_resolver(settings, cache, http_client)

        yield

        await http_client.aclose()
        await redis_client.aclose()

    app = FastAPI(
        title="Weather Proxy",
        version=settings.app_version,
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(health.router)
    app.include_router(weather.router)

    # -- Middleware (order matters: last added = outermost in Starlette) --

    app.add_middleware(
        RateLimitMiddleware,
        limit=settings.rate_limit_requests,
        window_s=settings.rate_limit_window_s,
        enabled=settings.rate_limit_enabled,
    )

    # Request ID injection (outermost, so 429s carry it too)
    @app.middleware("http")
    async def request_envelope_middleware(request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # -- Exception Handlers --

    @app.exception_handler(WeatherProxyError)
    async def weather_proxy_error_handler(request: Request, exc: WeatherProxyError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.code, exc.public_message),
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body(request, "NOT_FOUND", "Resource not found."),
        )

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "INTERNAL_ERROR", "An unexpected error occurred."),
        )

    return app


def serve() -> None:
    """Console entry point: load config, set up logging, run uvicorn on PORT."""
    try:
        settings = get_settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.critical("Invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs full request URLs at INFO, which include the provider key
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger.info("Server listening on port %d", settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    serve()
