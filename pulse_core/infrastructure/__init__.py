"""Infrastructure components for AIO Pulse.

Currently the in-process rate limiter guarding the public endpoints.
"""

from pulse_core.infrastructure.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimitExceeded,
    RateLimitResult,
    get_client_ip,
)

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitExceeded",
    "RateLimitResult",
    "get_client_ip",
]
