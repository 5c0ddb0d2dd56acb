"""
UpstreamClient — Visual Crossing Timeline API client.

One call to fetch() is one GET:

  {base_url}/{location}?key={api_key}&unitGroup=metric&include=days

The response is a provider-defined JSON document, e.g.

  {
    "resolvedAddress": "London, England, United Kingdom",
    "timezone": "Europe/London",
    "days": [{"datetime": "2026-10-19", "tempmax": 14.2, ...}, ...],
    ...
  }

It is returned as a plain dict and never interpreted here. No retries, no
caching: every failure becomes a single UpstreamError for the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from services.weather_proxy.errors import UpstreamError

logger = logging.getLogger(__name__)

# Fixed query parameters appended after the API key
_UNIT_GROUP = "metric"
_INCLUDE = "days"

# Max characters of an error body echoed into log lines
_LOG_BODY_CHARS = 200


def _reject_constant(name: str) -> Any:
    """NaN/Infinity are not JSON; refuse them rather than pass them on."""
    raise ValueError(f"invalid JSON constant {name}")


def build_request_url(base_url: str, location: str) -> str:
    """Join base URL and location without doubling the separator."""
    return f"{base_url.rstrip('/')}/{location}"


class UpstreamClient:
    """
    Stateless translator of a location query into a provider payload.

    Usage:
        client = UpstreamClient(http, base_url=settings.visual_crossing_api_url,
                                api_key=settings.visual_crossing_api_key)
        payload = await client.fetch("London")
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str, api_key: str) -> None:
        """
        Args:
            http:     Shared httpx.AsyncClient; owns connection pooling and timeouts.
            base_url: Provider timeline endpoint (VISUAL_CROSSING_API_URL).
            api_key:  Provider API key (VISUAL_CROSSING_API_KEY).
        """
        self._http = http
        self._base_url = base_url
        self._api_key = api_key

    def _params(self) -> dict[str, str]:
        return {"key": self._api_key, "unitGroup": _UNIT_GROUP, "include": _INCLUDE}

    async def fetch(self, location: str) -> dict[str, Any]:
        url = build_request_url(self._base_url, location)
        logger.info(
            "Fetching weather data from: %s?key=[FILTERED]&unitGroup=%s&include=%s",
            url,
            _UNIT_GROUP,
            _INCLUDE,
        )

        try:
            resp = await self._http.get(url, params=self._params())
        except httpx.HTTPError as exc:
            logger.warning("Weather provider request failed for location=%r: %s", location, exc)
            raise UpstreamError(f"failed to fetch weather data: {exc}") from exc

        if not resp.is_success:
            body = resp.text
            logger.warning(
                "Weather provider returned %d for location=%r: %s",
                resp.status_code,
                location,
                body[:_LOG_BODY_CHARS],
            )
            raise UpstreamError(
                f"failed to fetch weather data: status {resp.status_code}, response: {body}",
                status_code=resp.status_code,
                body=body,
            )

        try:
            data = json.loads(resp.content, parse_constant=_reject_constant)
        except ValueError as exc:
            logger.warning("Weather provider sent an undecodable body for location=%r: %s", location, exc)
            raise UpstreamError(f"failed to decode weather data: {exc}") from exc

        if not isinstance(data, dict):
            logger.warning(
                "Weather provider sent a JSON %s for location=%r, expected an object",
                type(data).__name__,
                location,
            )
            raise UpstreamError(
                f"failed to decode weather data: expected a JSON object, got {type(data).__name__}"
            )
        return data
