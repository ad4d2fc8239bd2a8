"""
Sliding-window rate limiting for authentication flows.

Tracks recent attempt timestamps per key and decides whether a new attempt
may proceed. Windows are evaluated lazily when a key is checked; stale
entries are removed by ``RateLimiter.cleanup``, which the embedding
application schedules (see ``portalguard.security.maintenance``).
"""

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Deque, Dict, Optional, Union
import logging

from portalguard.error_handling.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Duration = Union[int, float, timedelta]

# Statistics keep at most this many prefixes; the rest share OTHER_STATS_BUCKET
MAX_STATS_BUCKETS = 32
OTHER_STATS_BUCKET = "other"


def _to_seconds(value: Duration, parameter: str) -> float:
    """Convert a duration to seconds, rejecting non-positive values."""
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        raise ConfigurationError(
            f"{parameter} must be a number of seconds or a timedelta",
            parameter=parameter,
            value=value
        )

    if seconds <= 0:
        raise ConfigurationError(
            f"{parameter} must be positive",
            parameter=parameter,
            value=value
        )
    return seconds


def _check_max_attempts(max_attempts: int) -> None:
    if (
        not isinstance(max_attempts, int)
        or isinstance(max_attempts, bool)
        or max_attempts <= 0
    ):
        raise ConfigurationError(
            "max_attempts must be a positive integer",
            parameter="max_attempts",
            value=max_attempts
        )


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ConfigurationError(
            "Rate limit key must be a non-empty string",
            parameter="key",
            value=key
        )


@dataclass(frozen=True)
class RateLimitPolicy:
    """Maximum attempts allowed within a rolling window."""

    max_attempts: int
    window_seconds: float

    def __post_init__(self) -> None:
        _check_max_attempts(self.max_attempts)
        _to_seconds(self.window_seconds, "window_seconds")


@dataclass
class RateLimitConfig:
    """Rate limit policies for the authentication flows."""

    login: RateLimitPolicy = field(
        default_factory=lambda: RateLimitPolicy(max_attempts=5, window_seconds=15 * 60)
    )
    register: RateLimitPolicy = field(
        default_factory=lambda: RateLimitPolicy(max_attempts=10, window_seconds=10 * 60)
    )
    password_reset: RateLimitPolicy = field(
        default_factory=lambda: RateLimitPolicy(max_attempts=5, window_seconds=15 * 60)
    )
    password_change: RateLimitPolicy = field(
        default_factory=lambda: RateLimitPolicy(max_attempts=5, window_seconds=15 * 60)
    )

    # Memory bound for the periodic sweep, not a throttling window
    cleanup_max_age_seconds: float = 60 * 60
    cleanup_interval_seconds: float = 10 * 60


class RateLimiter:
    """
    Per-key sliding window rate limiter.

    Each key maps to a deque of non-decreasing attempt timestamps. A
    timestamp ``t`` counts toward the window while ``now - t < window``.
    Entries are created when the first attempt is recorded and removed by
    ``reset``, by ``cleanup``, or by a check that finds every timestamp
    expired; the table never holds an empty deque. An exhausted key keeps
    its entry until it is checked again or swept.

    All operations run under a single lock, so the check-and-record in
    ``can_attempt`` is atomic with respect to concurrent callers.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Initialize rate limiter.

        Args:
            clock: Monotonic time source in seconds (defaults to time.monotonic)
        """
        self._clock = clock or time.monotonic
        self._attempts: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._stats: Dict[str, Dict[str, int]] = defaultdict(lambda: {"allowed": 0, "rejected": 0})

    def can_attempt(self, key: str, max_attempts: int, window: Duration) -> bool:
        """
        Check whether an attempt for key is allowed, recording it if so.

        A refused attempt is not recorded.

        Args:
            key: Identifier of the throttled operation/actor
            max_attempts: Attempts allowed within the window
            window: Window length in seconds or as a timedelta

        Returns:
            True if the attempt is allowed, False otherwise

        Raises:
            ConfigurationError: If key, max_attempts or window is invalid
        """
        _check_key(key)
        _check_max_attempts(max_attempts)
        window_seconds = _to_seconds(window, "window")

        with self._lock:
            now = self._clock()
            attempts = self._recent_attempts(key, now - window_seconds)

            if len(attempts) >= max_attempts:
                self._count(key, "rejected")
                logger.debug(
                    "Rate limit reached",
                    extra={"rate_limit_key": key, "max_attempts": max_attempts}
                )
                return False

            attempts.append(now)
            self._attempts[key] = attempts
            self._count(key, "allowed")
            return True

    def reset(self, key: str) -> None:
        """Forget all attempts for key. Resetting an unknown key is a no-op."""
        with self._lock:
            self._attempts.pop(key, None)

    def cleanup(self, max_age: Duration) -> int:
        """
        Drop timestamps older than max_age and remove emptied entries.

        Args:
            max_age: Retention horizon in seconds or as a timedelta

        Returns:
            Number of entries removed
        """
        max_age_seconds = _to_seconds(max_age, "max_age")
        removed = 0

        with self._lock:
            cutoff = self._clock() - max_age_seconds
            for key in list(self._attempts):
                attempts = self._attempts[key]
                self._prune(attempts, cutoff)
                if not attempts:
                    del self._attempts[key]
                    removed += 1

        if removed:
            logger.debug(f"Rate limiter cleanup removed {removed} entries")
        return removed

    def remaining_attempts(self, key: str, max_attempts: int, window: Duration) -> int:
        """Get how many attempts key may still make in the current window."""
        _check_key(key)
        _check_max_attempts(max_attempts)
        window_seconds = _to_seconds(window, "window")

        with self._lock:
            attempts = self._recent_attempts(key, self._clock() - window_seconds)
            return max(0, max_attempts - len(attempts))

    def time_until_next_allowed(self, key: str, max_attempts: int, window: Duration) -> float:
        """Calculate seconds until key may attempt again (0 if allowed now)."""
        _check_key(key)
        _check_max_attempts(max_attempts)
        window_seconds = _to_seconds(window, "window")

        with self._lock:
            now = self._clock()
            attempts = self._recent_attempts(key, now - window_seconds)
            if len(attempts) < max_attempts:
                return 0

            # The slot frees once enough of the oldest attempts leave the window
            blocking = attempts[len(attempts) - max_attempts]
            return max(0, blocking + window_seconds - now)

    def _recent_attempts(self, key: str, cutoff: float) -> Deque[float]:
        """Prune the entry for key in place, dropping it once empty."""
        attempts = self._attempts.get(key)
        if attempts is None:
            return deque()
        self._prune(attempts, cutoff)
        if not attempts:
            del self._attempts[key]
        return attempts

    def _count(self, key: str, outcome: str) -> None:
        """Count an outcome under the operation prefix of key (``login_<email>``)."""
        bucket = key.partition("_")[0]
        if bucket not in self._stats and len(self._stats) >= MAX_STATS_BUCKETS:
            bucket = OTHER_STATS_BUCKET
        self._stats[bucket][outcome] += 1

    @staticmethod
    def _prune(attempts: Deque[float], cutoff: float) -> None:
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._attempts

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def get_statistics(self) -> Dict[str, Dict[str, float]]:
        """
        Get allow/reject counts grouped by key prefix.

        Prefixes beyond the first MAX_STATS_BUCKETS are counted under
        OTHER_STATS_BUCKET.
        """
        stats = {}

        with self._lock:
            for bucket, counts in self._stats.items():
                total = counts["allowed"] + counts["rejected"]
                stats[bucket] = {
                    "allowed": counts["allowed"],
                    "rejected": counts["rejected"],
                    "total": total,
                    "rejection_rate": counts["rejected"] / max(1, total)
                }

        return stats

    def reset_statistics(self) -> None:
        """Reset all statistics."""
        with self._lock:
            self._stats.clear()
