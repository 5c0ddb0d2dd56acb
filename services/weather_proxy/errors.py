"""
Error taxonomy for the weather proxy.

Every error the service can surface derives from WeatherProxyError and
carries the HTTP status and envelope code the boundary renders for it.
CacheCorruptionError never reaches the boundary: the resolver absorbs it
and refetches from upstream.
"""

from __future__ import annotations


class WeatherProxyError(Exception):
    """Base class. Subclasses set status_code/code for the error envelope."""

    status_code = 500
    code = "INTERNAL_ERROR"

    @property
    def public_message(self) -> str:
        return str(self)


class InvalidLocationError(WeatherProxyError):
    """Missing or empty location query — caller-fixable."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "location query parameter is required") -> None:
        super().__init__(message)


class UpstreamError(WeatherProxyError):
    """The weather provider could not be reached, refused, or sent junk."""

    code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        # Upstream HTTP status, None for transport and decode failures
        self.upstream_status = status_code
        self.body = body


# Name used by callers of UpstreamClient.fetch
FetchError = UpstreamError


class CacheInfrastructureError(WeatherProxyError):
    """Redis unreachable or erroring. Never treated as a cache miss."""

    code = "CACHE_UNAVAILABLE"

    @property
    def public_message(self) -> str:
        return "internal server error"


class CacheCorruptionError(WeatherProxyError):
    """A cached value could not be decoded back into a payload."""

    code = "CACHE_CORRUPTED"
