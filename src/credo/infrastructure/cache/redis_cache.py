"""
Redis Cache Adapter

This module implements :class:`ICacheService` on top of redis-py's asyncio
client. It stores one-time codes, attempt counters, resend locks and reset
exchange tokens.

Every key is written under the configured global prefix. Atomicity relies on
single Redis commands (``SET NX``, ``GETDEL``) and on a small Lua script for
increment-with-expiry, so concurrent requests never observe a half-applied
update.

**Security Note**: Use rediss:// when Redis is reached over an untrusted
network. Values are never logged; keys are logged without their identifier
part, since identifiers can be e-mail addresses.
"""

from typing import Awaitable, Optional, TypeVar

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from credo.core.exceptions import CacheError
from credo.domain.interfaces.cache import CacheCategory, ICacheService

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTLS = {
    CacheCategory.AUTH: 300,
    CacheCategory.GENERAL: 600,
}


class RedisCacheService(ICacheService):
    """Redis-backed implementation of the cache interface.

    Attributes:
        client (Redis): Async Redis client created with ``decode_responses=True``.
        key_prefix (str): Prefix prepended to every key.
    """

    # INCR, then set the TTL only when the counter was just created.
    _INCR_WITH_TTL_SCRIPT = """
local value = redis.call('INCR', KEYS[1])
if value == 1 then
  redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
end
return value
"""

    def __init__(
        self,
        client: Redis,
        key_prefix: str = "credo:",
        ttls: Optional[dict] = None,
    ):
        self.client = client
        self.key_prefix = key_prefix
        self._ttls = {**DEFAULT_TTLS, **{CacheCategory(k): v for k, v in (ttls or {}).items()}}
        self._incr_with_ttl = client.register_script(self._INCR_WITH_TTL_SCRIPT)

    @classmethod
    def from_settings(cls, settings) -> "RedisCacheService":
        """Creates a client from ``REDIS_URL`` with command timeouts applied."""
        client = Redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
        return cls(client, key_prefix=settings.CACHE_KEY_PREFIX, ttls=settings.cache_ttls)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def _execute(self, operation: str, key: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except RedisError as exc:
            logger.error(
                "Redis command failed",
                operation=operation,
                key_category=key.split(":", 1)[0],
                error=type(exc).__name__,
            )
            raise CacheError(f"Cache operation '{operation}' failed") from exc

    def ttl_for(self, category: CacheCategory) -> int:
        return self._ttls[CacheCategory(category)]

    async def get(self, key: str) -> Optional[str]:
        return await self._execute("get", key, self.client.get(self._key(key)))

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
        category: CacheCategory = CacheCategory.GENERAL,
    ) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_for(category)
        await self._execute("set", key, self.client.set(self._key(key), value, ex=ttl))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._execute(
            "delete", keys[0], self.client.delete(*(self._key(k) for k in keys))
        )

    async def incr(self, key: str, ttl_seconds: int) -> int:
        value = await self._execute(
            "incr", key, self._incr_with_ttl(keys=[self._key(key)], args=[ttl_seconds])
        )
        return int(value)

    async def pop(self, key: str) -> Optional[str]:
        return await self._execute("pop", key, self.client.getdel(self._key(key)))

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        stored = await self._execute(
            "set_if_absent", key, self.client.set(self._key(key), value, ex=ttl_seconds, nx=True)
        )
        return bool(stored)

    async def close(self) -> None:
        """Closes the underlying connection pool."""
        await self.client.aclose()
