"""API dependencies for dependency injection.

Long-lived collaborators (settings, provider router, monitoring service,
rate limiter) are created once in the application lifespan and stored on
``app.state``; these dependencies hand them to the routes.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status

from pulse_core.config import Settings
from pulse_core.domain.services.monitoring import MonitoringService
from pulse_core.domain.services.router import ProviderRouter
from pulse_core.infrastructure.rate_limiter import (
    UNKNOWN_CLIENT,
    FixedWindowRateLimiter,
    RateLimitExceeded,
    RateLimitResult,
    get_client_ip,
)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider_router(request: Request) -> ProviderRouter:
    return request.app.state.provider_router


def get_monitoring_service(request: Request) -> MonitoringService:
    return request.app.state.monitoring


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


def client_identifier(request: Request) -> str:
    """Client IP from proxy headers, else the socket peer address."""
    ip = get_client_ip(request.headers)
    if ip == UNKNOWN_CLIENT and request.client is not None:
        return request.client.host
    return ip


def _rate_limit_headers(settings: Settings, result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(settings.rate_limit_requests),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at_ms),
    }


def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: Annotated[FixedWindowRateLimiter, Depends(get_rate_limiter)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> RateLimitResult:
    """Count the request against the caller's window.

    Raises:
        HTTPException: 429 when the caller is over the limit.
    """
    try:
        result = limiter.enforce(
            client_identifier(request),
            settings.rate_limit_requests,
            settings.rate_limit_window_ms,
        )
    except RateLimitExceeded as e:
        headers = _rate_limit_headers(settings, e.result)
        headers["Retry-After"] = str(e.retry_after_seconds)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please wait a moment and try again.",
            headers=headers,
        ) from e

    response.headers.update(_rate_limit_headers(settings, result))
    return result


# Type aliases for cleaner route signatures
AppSettings = Annotated[Settings, Depends(get_app_settings)]
ProviderRouterDep = Annotated[ProviderRouter, Depends(get_provider_router)]
MonitoringServiceDep = Annotated[MonitoringService, Depends(get_monitoring_service)]
RateLimited = Annotated[RateLimitResult, Depends(enforce_rate_limit)]
