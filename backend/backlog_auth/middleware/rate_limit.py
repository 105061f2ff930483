"""Per-IP rate limiting for credential endpoints.

In-memory and per-process: each worker keeps its own window, so the limit is
advisory when several workers run behind a load balancer.
"""

import time
from collections import defaultdict

from backlog_auth.core.logging import get_logger

logger = get_logger("rate_limit")

LOGIN_WINDOW_SECONDS = 60


class LoginRateLimiter:
    """Sliding one-minute window of attempts per client IP."""

    def __init__(self, max_attempts: int, window_seconds: float = LOGIN_WINDOW_SECONDS):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._attempts: dict[str, list[float]] = defaultdict(list)

    def _prune(self, key: str, now: float) -> list[float]:
        recent = [t for t in self._attempts[key] if now - t < self.window_seconds]
        if recent:
            self._attempts[key] = recent
        else:
            self._attempts.pop(key, None)
        return recent

    def hit(self, client_ip: str | None) -> bool:
        """Record an attempt. Returns False when the client is over the limit.

        Rejected attempts are not recorded, so a blocked client regains access
        once its earlier attempts leave the window.
        """
        key = client_ip or "unknown"
        now = time.monotonic()
        if len(self._prune(key, now)) >= self.max_attempts:
            logger.warning("Login rate limit exceeded")
            return False
        self._attempts[key].append(now)
        return True

    def reset(self) -> None:
        self._attempts.clear()

    def cleanup_inactive(self, now: float | None = None) -> int:
        """Drop clients with no attempts left in the window.

        Returns the number of clients removed.
        """
        if now is None:
            now = time.monotonic()
        before = len(self._attempts)
        for key in list(self._attempts):
            self._prune(key, now)
        removed = before - len(self._attempts)
        if removed > 0:
            logger.debug(f"Cleaned up {removed} inactive rate limit clients")
        return removed

    @property
    def tracked_clients(self) -> int:
        return len(self._attempts)
