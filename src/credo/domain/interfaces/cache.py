"""Cache interface for short-lived, namespaced key-value state.

One-time codes, attempt counters, resend locks and reset exchange tokens live
here. Keys are namespaced ``<category>:<identifier>`` and every adapter
prefixes them with a global, per-deployment prefix. A category carries a
default TTL used when the caller does not pass one.

Counters, fetch-and-delete and set-if-absent must be atomic, since concurrent
requests race on the same OTP state.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


class CacheCategory(str, Enum):
    """Key categories and the default-TTL buckets they map to."""

    AUTH = "auth"
    GENERAL = "general"


class ICacheService(ABC):
    """An interface defining the contract for the key-value cache.

    Adapters raise :class:`~credo.core.exceptions.CacheError` when the
    backing store fails; they never silently report a miss.
    """

    @staticmethod
    def build_key(category: str, identifier: str) -> str:
        """Builds a namespaced key, ``<category>:<identifier>``."""
        return f"{category}:{identifier}"

    @abstractmethod
    def ttl_for(self, category: CacheCategory) -> int:
        """Returns the default TTL in seconds for a category."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Returns the value stored under ``key``, or None if absent or expired."""
        raise NotImplementedError

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
        category: CacheCategory = CacheCategory.GENERAL,
    ) -> None:
        """Stores ``value`` under ``key``.

        Args:
            key: The key, without the global prefix.
            value: The string value.
            ttl_seconds: Expiry in seconds; defaults to the category's TTL.
            category: The TTL bucket used when ``ttl_seconds`` is None.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Deletes keys. Returns the number of keys that existed."""
        raise NotImplementedError

    @abstractmethod
    async def incr(self, key: str, ttl_seconds: int) -> int:
        """Atomically increments a counter and returns the new value.

        The TTL is applied when the increment creates the counter, so an
        abandoned counter always expires.
        """
        raise NotImplementedError

    @abstractmethod
    async def pop(self, key: str) -> Optional[str]:
        """Atomically fetches and deletes ``key``.

        Of several concurrent callers at most one receives the value.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Stores ``value`` only if ``key`` does not exist.

        Returns:
            bool: True if the value was stored.
        """
        raise NotImplementedError
