"""
Weather endpoint — GET /weather?location=<query>

Returns the provider payload verbatim as the JSON body. The X-Cache header
says whether it was served from cache (HIT), fetched on a miss (MISS), or
refetched because the cached copy was unreadable (REFRESHED).
Errors are rendered by the WeatherProxyError handler in main.py.
"""

from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse

from services.weather_proxy.errors import InvalidLocationError

router = APIRouter(tags=["weather"])


@router.get("/weather")
async def get_weather(
    request: Request,
    location: str | None = Query(None, description="Provider location query, e.g. 'London' or '51.5,-0.12'"),
) -> JSONResponse:
    # Checked here rather than with min_length so a missing param is a 400, not a 422
    if not location:
        raise InvalidLocationError()

    resolver = request.app.state.weather_resolver
    result = await resolver.resolve(location)

    return JSONResponse(
        content=result.payload,
        headers={"X-Cache": result.source.value.upper()},
    )
