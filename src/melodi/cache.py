"""Time-bounded read-through cache (used for the full catalog listing)."""

import threading
import time


class TimedCache:
    """Cache entries for `ttl_seconds`, measured on an injectable clock.

    Concurrent callers missing the same key wait for a single load and then
    share its result. A loader that raises leaves no entry behind.
    """

    def __init__(self, ttl_seconds, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries = {}
        self._lock = threading.Lock()
        self._key_locks = {}

    def _key_lock(self, key):
        with self._lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def get(self, key):
        """Return the cached value for `key`, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key, value):
        with self._lock:
            self._entries[key] = (value, self.clock() + self.ttl_seconds)

    def get_or_load(self, key, loader):
        """Return the cached value, calling `loader()` on miss or expiry.

        Only one caller per key runs the loader; the others block until it
        finishes and then read the stored value.
        """
        value = self.get(key)
        if value is not None:
            return value

        with self._key_lock(key):
            # Another caller may have loaded it while we waited
            value = self.get(key)
            if value is not None:
                return value
            value = loader()
            self.set(key, value)
            return value

    def invalidate(self, key=None):
        """Drop one entry, or every entry when `key` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
