"""
Strava API rate limiter.

Strava publishes two budgets, each with a 15-minute window (aligned to
:00/:15/:30/:45) and a daily window (resets at midnight UTC):
- overall: 200 requests / 15 min, 2,000 / day
- read (non-upload): 100 requests / 15 min, 1,000 / day

Usage is reported back in every response:
    X-RateLimit-Limit / X-RateLimit-Usage          "15min,daily"
    X-ReadRateLimit-Limit / X-ReadRateLimit-Usage  "15min,daily"

The limiter mirrors those headers and answers whether another call is
safe, keeping a 10% buffer so we stop before Strava starts returning 429.
It is a plain object constructed by the application at startup; nothing
here is a module-level singleton.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)


WINDOW_MINUTES = 15
DEFAULT_BACKOFF_MS = 5000
MAX_DAILY_BACKOFF_MS = 30 * 60 * 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def window_start(now: datetime) -> datetime:
    """Start of the 15-minute window containing `now`."""
    minute = (now.minute // WINDOW_MINUTES) * WINDOW_MINUTES
    return now.replace(minute=minute, second=0, microsecond=0)


def parse_rate_limit_header(header: Optional[str]) -> tuple[int, int]:
    """Parse "15min,daily" into two ints. Missing parts become 0."""
    if not header:
        return 0, 0
    parts = []
    for raw in header.split(",")[:2]:
        try:
            parts.append(int(raw.strip()))
        except ValueError:
            parts.append(0)
    while len(parts) < 2:
        parts.append(0)
    return parts[0], parts[1]


@dataclass
class RateLimitState:
    """Last known limits and usage."""

    limit_15min: int = 200
    limit_daily: int = 2000
    usage_15min: int = 0
    usage_daily: int = 0

    read_limit_15min: int = 100
    read_limit_daily: int = 1000
    read_usage_15min: int = 0
    read_usage_daily: int = 0

    window_start_15min: datetime = field(default_factory=lambda: window_start(_utcnow()))
    day: Optional[datetime] = None
    last_updated: Optional[datetime] = None


class StravaRateLimiter:
    """
    Tracks Strava's call budget for this process.

    Usage:
        limiter = StravaRateLimiter()
        if limiter.can_make_read_request():
            response = await client.get(...)
            limiter.update_from_headers(response.headers)
        else:
            wait_ms = limiter.get_retry_after_ms()
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._state = self._initial_state()

    def _initial_state(self) -> RateLimitState:
        now = self._clock()
        return RateLimitState(
            window_start_15min=window_start(now),
            day=now.replace(hour=0, minute=0, second=0, microsecond=0),
        )

    # -------------------------------------------------------------------------
    # Window bookkeeping
    # -------------------------------------------------------------------------

    def _roll_windows(self) -> None:
        """Zero usage counters that belong to an expired window."""
        now = self._clock()
        current = window_start(now)
        if current > self._state.window_start_15min:
            self._state.usage_15min = 0
            self._state.read_usage_15min = 0
            self._state.window_start_15min = current

        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if self._state.day is None or today > self._state.day:
            if self._state.day is not None:
                logger.info("Strava daily rate limit counters reset")
            self._state.usage_daily = 0
            self._state.read_usage_daily = 0
            self._state.day = today

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Record limits and usage reported by a Strava response."""
        self._roll_windows()
        state = self._state

        limit = headers.get("X-RateLimit-Limit")
        if limit:
            state.limit_15min, state.limit_daily = parse_rate_limit_header(limit)

        usage = headers.get("X-RateLimit-Usage")
        if usage:
            state.usage_15min, state.usage_daily = parse_rate_limit_header(usage)

        read_limit = headers.get("X-ReadRateLimit-Limit")
        if read_limit:
            state.read_limit_15min, state.read_limit_daily = parse_rate_limit_header(read_limit)

        read_usage = headers.get("X-ReadRateLimit-Usage")
        if read_usage:
            state.read_usage_15min, state.read_usage_daily = parse_rate_limit_header(read_usage)

        state.last_updated = self._clock()

        if usage or read_usage:
            logger.debug(
                f"Strava rate limit usage: overall {state.usage_15min}/{state.limit_15min} "
                f"(daily {state.usage_daily}/{state.limit_daily}), "
                f"read {state.read_usage_15min}/{state.read_limit_15min} "
                f"(daily {state.read_usage_daily}/{state.read_limit_daily})"
            )

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    @staticmethod
    def _within(usage_15: int, limit_15: int, usage_day: int, limit_day: int) -> bool:
        # Leave 10% headroom: at least 1 call per window, 10 per day
        buffer_15 = max(1, int(limit_15 * 0.1))
        buffer_day = max(10, int(limit_day * 0.1))
        return usage_15 < (limit_15 - buffer_15) and usage_day < (limit_day - buffer_day)

    def can_make_read_request(self) -> bool:
        """True if a read (non-upload) call fits in the remaining budget."""
        self._roll_windows()
        s = self._state
        allowed = self._within(
            s.read_usage_15min, s.read_limit_15min, s.read_usage_daily, s.read_limit_daily
        )
        if not allowed:
            logger.warning(
                f"Strava read budget exhausted: {s.read_usage_15min}/{s.read_limit_15min} "
                f"in window, {s.read_usage_daily}/{s.read_limit_daily} today"
            )
        return allowed

    def can_make_request(self) -> bool:
        """True if any call (uploads included) fits in the remaining budget."""
        self._roll_windows()
        s = self._state
        return self._within(s.usage_15min, s.limit_15min, s.usage_daily, s.limit_daily)

    def time_until_window_reset_ms(self) -> int:
        now = self._clock()
        end = window_start(now) + timedelta(minutes=WINDOW_MINUTES)
        return max(0, int((end - now).total_seconds() * 1000))

    def time_until_daily_reset_ms(self) -> int:
        now = self._clock()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        return max(0, int((midnight - now).total_seconds() * 1000))

    def get_retry_after_ms(self) -> int:
        """
        Recommended delay before the next read call.

        Near the 15-minute limit: wait for the window to reset (+1s).
        Near the daily limit: back off, but never more than 30 minutes.
        Otherwise: a short default backoff.
        """
        s = self._state
        if s.read_limit_15min > 0 and s.read_usage_15min / s.read_limit_15min > 0.9:
            return self.time_until_window_reset_ms() + 1000

        if s.read_limit_daily > 0 and s.read_usage_daily / s.read_limit_daily > 0.9:
            return min(self.time_until_daily_reset_ms(), MAX_DAILY_BACKOFF_MS)

        return DEFAULT_BACKOFF_MS

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def get_usage_percentages(self) -> dict[str, float]:
        s = self._state

        def pct(used: int, limit: int) -> float:
            return round(used / limit * 100, 1) if limit > 0 else 0.0

        return {
            "read_15min": pct(s.read_usage_15min, s.read_limit_15min),
            "read_daily": pct(s.read_usage_daily, s.read_limit_daily),
            "overall_15min": pct(s.usage_15min, s.limit_15min),
            "overall_daily": pct(s.usage_daily, s.limit_daily),
        }

    def snapshot(self) -> RateLimitState:
        """Copy of the current state."""
        return replace(self._state)

    def reset(self) -> None:
        self._state = self._initial_state()
