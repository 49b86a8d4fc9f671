"""Token bucket rate limiter for PuppetDB requests."""
import time
import threading


class RateLimiter:
    """Token bucket rate limiter, thread-safe. A rate of 0 or less disables limiting."""

    def __init__(self, calls_per_minute):
        self.enabled = calls_per_minute > 0
        self.rate = calls_per_minute / 60.0  # tokens per second
        self.max_tokens = max(calls_per_minute, 1)
        self.tokens = float(self.max_tokens)
        self.last_time = time.monotonic()
        self._lock = threading.Lock()

    def _refill(self):
        now = time.monotonic()
        self.tokens = min(self.max_tokens, self.tokens + (now - self.last_time) * self.rate)
        self.last_time = now

    def try_acquire(self):
        """Take a token if one is available, without blocking."""
        if not self.enabled:
            return True
        with self._lock:
            self._refill()
            if self.tokens >= 1:
                self.tokens -= 1
                return True
            return False

    def wait(self):
        """Block until a token is available. Workers queue on the lock while one sleeps."""
        if not self.enabled:
            return
        with self._lock:
            self._refill()
            if self.tokens < 1:
                time.sleep((1 - self.tokens) / self.rate)
                self.tokens = 0
                self.last_time = time.monotonic()
            else:
                self.tokens -= 1
