"""
Per-caller rate limiting for anonymous chat requests.

Two transient counters per caller: requests per minute and a short burst
window. Every accepted request bumps both counters and refreshes their
expiry; a counter already at its limit rejects the request.
"""
import hashlib
import logging
import threading
import time
from typing import Callable, Dict

logger = logging.getLogger(__name__)

MINUTE_IN_SECONDS = 60

# Expired counters are swept at most once per interval
CLEANUP_INTERVAL_SECONDS = 60


class RateLimiter:
    def __init__(self, per_minute: int = 5, burst: int = 3, burst_window: int = 10,
                 clock: Callable[[], float] = time.time, cleanup_interval: int = CLEANUP_INTERVAL_SECONDS):
        self.per_minute = per_minute
        self.burst = burst
        self.burst_window = burst_window
        self.clock = clock
        self._counters: Dict[str, dict] = {}
        self.cleanup_interval = cleanup_interval
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def check(self, identifier: str, authenticated: bool = False) -> bool:
        """Count a request for `identifier`; False when it must be rejected."""
        if authenticated or not identifier:
            return True

        key = "chatbot_rl_" + hashlib.md5(identifier.encode()).hexdigest()
        with self._lock:
            self._sweep_expired()
            if not self._check_bucket(key + "_m", self.per_minute, MINUTE_IN_SECONDS):
                logger.warning(f"[RATE_LIMIT] Per-minute limit reached for {key[-8:]}")
                return False
            if not self._check_bucket(key + "_b", self.burst, self.burst_window):
                logger.warning(f"[RATE_LIMIT] Burst limit reached for {key[-8:]}")
                return False
        return True

    def _check_bucket(self, key: str, limit: int, ttl: int) -> bool:
        now = self.clock()
        entry = self._counters.get(key)
        count = entry["count"] if entry and entry["expires_at"] > now else 0
        if count >= limit:
            return False
        self._counters[key] = {"count": count + 1, "expires_at": now + ttl}
        return True

    def _sweep_expired(self) -> None:
        now = self.clock()
        if now - self._last_cleanup < self.cleanup_interval:
            return
        expired = [k for k, v in self._counters.items() if v["expires_at"] <= now]
        for key in expired:
            del self._counters[key]
        self._last_cleanup = now
        if expired:
            logger.debug(f"[RATE_LIMIT] Swept {len(expired)} expired counters")

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
