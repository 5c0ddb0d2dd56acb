"""
Sentry instrumentation for the weather proxy.
Strips sensitive headers and the provider API key from events.

httpx breadcrumbs record the full upstream URL, which carries the Visual
Crossing key as ?key=...; it is replaced with [FILTERED] before sending.
"""

import re
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from services.weather_proxy.config import Settings

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}

_API_KEY_PARAM = re.compile(r"([?&]key=)[^&#\s]*")


def _redact_url(value: Any) -> Any:
    if isinstance(value, str):
        return _API_KEY_PARAM.sub(r"\1[FILTERED]", value)
    return value


def _filter_headers(headers: Any) -> None:
    if isinstance(headers, dict):
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[FILTERED]"


def _strip_sensitive_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send hook: strip auth headers, cookies and the provider API key."""
    if "breadcrumbs" in event:
        for breadcrumb in event["breadcrumbs"].get("values", []):
            data = breadcrumb.get("data", {})
            if isinstance(data, dict):
                _filter_headers(data.get("headers", {}))
                if "url" in data:
                    data["url"] = _redact_url(data["url"])
                if "http.query" in data:
                    data["http.query"] = _redact_url("?" + data["http.query"])[1:]
            if "message" in breadcrumb:
                breadcrumb["message"] = _redact_url(breadcrumb["message"])
    # Also strip from request data
    request = event.get("request", {})
    if isinstance(request, dict):
        _filter_headers(request.get("headers", {}))
        if "url" in request:
            request["url"] = _redact_url(request["url"])
    return event


def setup_sentry(settings: Settings) -> None:
    if not settings.sentry_dsn:
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        before_send=_strip_sensitive_data,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
    )
