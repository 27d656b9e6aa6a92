"""In-process fixed-window rate limiter for the public entry points.

Each identifier (usually the client IP) gets a counter and a window end.
The first request opens a window of ``window_ms``; requests beyond
``limit`` are refused until the window ends. Windows are fixed, not
sliding.

State lives in one process. Construct a limiter at the entrypoint and
pass it to whatever needs it.

Usage:
    limiter = FixedWindowRateLimiter()
    limiter.start_sweeper(interval_seconds=300)

    try:
        limiter.enforce(client_ip, limit=20, window_ms=60_000)
    except RateLimitExceeded as e:
        ...  # e.retry_after_seconds
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


class RateLimitExceeded(Exception):
    """Raised by :meth:`FixedWindowRateLimiter.enforce` when over the limit."""

    def __init__(self, identifier: str, result: "RateLimitResult", retry_after_seconds: int = 1):
        self.identifier = identifier
        self.result = result
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limit exceeded for {identifier}")


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate-limit check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window.
        reset_at_ms: Epoch milliseconds at which the window ends.
    """

    allowed: bool
    remaining: int
    reset_at_ms: int


@dataclass
class _Window:
    count: int
    reset_at_ms: int


def _now_ms() -> int:
    return int(time.time() * 1000)


class FixedWindowRateLimiter:
    """Fixed-window counters keyed by caller identity."""

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        """Initialize the limiter.

        Args:
            clock: Returns the current time in epoch milliseconds.
        """
        self._clock = clock or _now_ms
        self._windows: dict[str, _Window] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, identifier: str, limit: int, window_ms: int) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether it is allowed.

        Synchronous: there is no await between reading and
        updating a window, so concurrent tasks cannot interleave here.
        """
        if limit <= 0 or window_ms <= 0:
            raise ValueError("limit and window_ms must be positive")

        now = self._clock()
        window = self._windows.get(identifier)

        if window is None or window.reset_at_ms <= now:
            window = _Window(count=1, reset_at_ms=now + window_ms)
            self._windows[identifier] = window
            return RateLimitResult(True, limit - 1, window.reset_at_ms)

        if window.count >= limit:
            return RateLimitResult(False, 0, window.reset_at_ms)

        window.count += 1
        return RateLimitResult(True, limit - window.count, window.reset_at_ms)

    def enforce(self, identifier: str, limit: int, window_ms: int) -> RateLimitResult:
        """Like :meth:`check` but raises when the request is refused.

        Raises:
            RateLimitExceeded: If the limit for the window is used up.
        """
        result = self.check(identifier, limit, window_ms)
        if not result.allowed:
            retry_after = max(1, math.ceil((result.reset_at_ms - self._clock()) / 1000))
            logger.warning(f"Rate limit exceeded for {identifier}, retry in {retry_after}s")
            raise RateLimitExceeded(identifier, result, retry_after_seconds=retry_after)
        return result

    def sweep_expired(self) -> int:
        """Drop windows that have ended. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if window.reset_at_ms <= now]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate-limit windows")
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()

    # -------------------------------------------------------------------------
    # Background sweep
    # -------------------------------------------------------------------------

    async def _sweep_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep_expired()

    def start_sweeper(self, interval_seconds: float = 300.0) -> asyncio.Task:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(
                self._sweep_forever(interval_seconds)
            )
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


def get_client_ip(headers: Mapping[str, str]) -> str:
    """Best-effort client address from proxy headers.

    Checks ``x-real-ip``, then ``cf-connecting-ip``, then the first entry
    of ``x-forwarded-for``. Header lookup must be case-insensitive
    (Starlette ``Headers`` and ``httpx.Headers`` both are).
    """
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value and value.strip():
            return value.strip()

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return UNKNOWN_CLIENT
