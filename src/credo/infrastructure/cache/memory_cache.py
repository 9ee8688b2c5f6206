"""In-process implementation of the cache interface.

Used by tests and by single-process deployments that run without Redis.
Every operation holds one lock for its whole read-modify-write, which gives
the same atomicity guarantees the Redis adapter gets from single commands.
Expired entries are dropped lazily on access and by :meth:`sweep`.
"""

import threading
import time
from typing import Callable, Dict, Optional, Tuple

from credo.domain.interfaces.cache import CacheCategory, ICacheService
from credo.infrastructure.cache.redis_cache import DEFAULT_TTLS


class InMemoryCacheService(ICacheService):
    """Thread-safe dict-backed cache with per-key expiry.

    Args:
        key_prefix: Prefix prepended to every key.
        ttls: Per-category default TTLs overriding the built-in defaults.
        clock: Monotonic time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        key_prefix: str = "credo:",
        ttls: Optional[dict] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.key_prefix = key_prefix
        self._ttls = {**DEFAULT_TTLS, **{CacheCategory(k): v for k, v in (ttls or {}).items()}}
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _live(self, full_key: str) -> Optional[str]:
        # Caller holds the lock.
        entry = self._entries.get(full_key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[full_key]
            return None
        return value

    def ttl_for(self, category: CacheCategory) -> int:
        return self._ttls[CacheCategory(category)]

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(self._key(key))

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
        category: CacheCategory = CacheCategory.GENERAL,
    ) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_for(category)
        with self._lock:
            self._entries[self._key(key)] = (value, self._clock() + ttl)

    async def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                full_key = self._key(key)
                if self._live(full_key) is not None:
                    removed += 1
                self._entries.pop(full_key, None)
        return removed

    async def incr(self, key: str, ttl_seconds: int) -> int:
        full_key = self._key(key)
        with self._lock:
            current = self._live(full_key)
            if current is None:
                value, expires_at = 1, self._clock() + ttl_seconds
            else:
                value, expires_at = int(current) + 1, self._entries[full_key][1]
            self._entries[full_key] = (str(value), expires_at)
            return value

    async def pop(self, key: str) -> Optional[str]:
        full_key = self._key(key)
        with self._lock:
            value = self._live(full_key)
            self._entries.pop(full_key, None)
            return value

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        full_key = self._key(key)
        with self._lock:
            if self._live(full_key) is not None:
                return False
            self._entries[full_key] = (value, self._clock() + ttl_seconds)
            return True

    def sweep(self) -> int:
        """Drops expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)
