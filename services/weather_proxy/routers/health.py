"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    cache_ok = await request.app.state.weather_cache.ping()
    return {
        "success": True,
        "data": {
            "status": "healthy" if cache_ok else "degraded",
            "version": request.app.state.settings.app_version,
            "cache": cache_ok,
        },
        "requestId": request.state.request_id,
    }
