"""Cache adapters."""

from .memory_cache import InMemoryCacheService
from .redis_cache import RedisCacheService

__all__ = ["InMemoryCacheService", "RedisCacheService"]
