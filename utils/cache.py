"""Generic TTL cache."""
import time
import threading

_MISSING = object()


class TTLCache:
    """Thread-safe key-value cache with per-key TTL."""

    def __init__(self, default_ttl=300):
        self.default_ttl = default_ttl
        self._store = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        """Get value if exists and not expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default
            if time.monotonic() > entry["expires"]:
                del self._store[key]
                return default
            return entry["value"]

    def set(self, key, value, ttl=None):
        """Set key with TTL in seconds."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._store[key] = {
                "value": value,
                "expires": time.monotonic() + ttl,
            }

    def get_or_load(self, key, loader, ttl=None):
        """Return the cached value, calling `loader()` on a miss. None results are cached too."""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self.set(key, value, ttl)
        return value

    def invalidate(self, key):
        """Remove a specific key."""
        with self._lock:
            self._store.pop(key, None)

    def clear(self):
        """Remove all entries."""
        with self._lock:
            self._store.clear()

    def __len__(self):
        with self._lock:
            return len(self._store)
