"""Sliding-window rate limiting for login attempts, keyed by client address."""

import threading
import time
from typing import Callable, Dict, List

import structlog

logger = structlog.get_logger(__name__)


class LoginRateLimiter:
    """Brute-force protection for the login endpoint.

    Keeps, per client address, the timestamps of accepted attempts inside
    the window. Rejected attempts are not recorded. State is process-local
    and lost on restart.
    """

    def __init__(
        self,
        max_attempts: int = 10,
        window_seconds: float = 15 * 60,
        max_tracked: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the rate limiter.

        Args:
            max_attempts: Attempts allowed per address within the window
            window_seconds: Sliding window length
            max_tracked: Address count above which a sweep runs before checks
            clock: Monotonic time source in seconds
        """
        self.max_attempts = max_attempts
        self.window = window_seconds
        self.max_tracked = max_tracked
        self._clock = clock
        self._attempts: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def _recent(self, address: str, now: float) -> List[float]:
        return [ts for ts in self._attempts.get(address, []) if now - ts < self.window]

    def check(self, address: str) -> bool:
        """Check and record a login attempt.

        Args:
            address: Client address

        Returns:
            True if the attempt is allowed (and was recorded), False if the
            address already has max_attempts inside the window
        """
        with self._lock:
            now = self._clock()

            if len(self._attempts) > self.max_tracked:
                self._sweep_locked(now)

            recent = self._recent(address, now)
            if len(recent) >= self.max_attempts:
                self._attempts[address] = recent
                return False

            recent.append(now)
            self._attempts[address] = recent
            return True

    def retry_after(self, address: str) -> int:
        """Seconds until the oldest in-window attempt expires (0 if allowed)."""
        with self._lock:
            now = self._clock()
            recent = self._recent(address, now)
            if len(recent) < self.max_attempts:
                return 0
            remaining = recent[0] + self.window - now
            return max(0, int(remaining) + 1)

    def remaining(self, address: str) -> int:
        with self._lock:
            now = self._clock()
            return max(0, self.max_attempts - len(self._recent(address, now)))

    def reset(self, address: str) -> None:
        with self._lock:
            self._attempts.pop(address, None)

    def sweep(self) -> int:
        """Drop addresses with no attempts left inside the window.

        Returns:
            Number of addresses removed
        """
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        stale = []
        for address in self._attempts:
            recent = self._recent(address, now)
            if recent:
                self._attempts[address] = recent
            else:
                stale.append(address)

        for address in stale:
            del self._attempts[address]

        if stale:
            logger.debug("rate_limiter_swept", removed=len(stale), tracked=len(self._attempts))
        return len(stale)

    @property
    def tracked_addresses(self) -> int:
        with self._lock:
            return len(self._attempts)
