import pytest

from credo.domain.interfaces.cache import CacheCategory
from credo.infrastructure.cache import InMemoryCacheService


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return InMemoryCacheService(key_prefix="test:", ttls={"auth": 60}, clock=clock)


async def test_set_and_get(cache):
    await cache.set("otp:a", "123456", ttl_seconds=30)
    assert await cache.get("otp:a") == "123456"


async def test_entries_expire(cache, clock):
    await cache.set("otp:a", "123456", ttl_seconds=30)
    clock.advance(30)
    assert await cache.get("otp:a") is None


async def test_category_ttl_applies_when_none_given(cache, clock):
    # Arrange
    await cache.set("k", "v", category=CacheCategory.AUTH)

    # Act & Assert
    assert cache.ttl_for(CacheCategory.AUTH) == 60
    assert cache.ttl_for(CacheCategory.GENERAL) == 600
    clock.advance(59)
    assert await cache.get("k") == "v"
    clock.advance(1)
    assert await cache.get("k") is None


async def test_keys_are_prefixed(cache):
    await cache.set("k", "v", ttl_seconds=10)
    assert list(cache._entries) == ["test:k"]


async def test_delete_counts_live_keys_only(cache, clock):
    # Arrange
    await cache.set("a", "1", ttl_seconds=10)
    await cache.set("b", "2", ttl_seconds=1)
    clock.advance(5)

    # Act
    removed = await cache.delete("a", "b", "missing")

    # Assert
    assert removed == 1
    assert cache._entries == {}


async def test_incr_keeps_original_expiry(cache, clock):
    # Arrange
    assert await cache.incr("attempts:a", ttl_seconds=10) == 1
    clock.advance(6)

    # Act
    second = await cache.incr("attempts:a", ttl_seconds=10)
    clock.advance(4)

    # Assert
    assert second == 2
    assert await cache.get("attempts:a") is None
    assert await cache.incr("attempts:a", ttl_seconds=10) == 1


async def test_pop_returns_value_once(cache):
    await cache.set("reset:t", "alice@example.com", ttl_seconds=10)
    assert await cache.pop("reset:t") == "alice@example.com"
    assert await cache.pop("reset:t") is None


async def test_set_if_absent(cache, clock):
    assert await cache.set_if_absent("lock:a", "1", ttl_seconds=5) is True
    assert await cache.set_if_absent("lock:a", "1", ttl_seconds=5) is False
    clock.advance(5)
    assert await cache.set_if_absent("lock:a", "1", ttl_seconds=5) is True


async def test_sweep_removes_expired_entries(cache, clock):
    # Arrange
    await cache.set("short", "1", ttl_seconds=1)
    await cache.set("long", "1", ttl_seconds=100)
    clock.advance(2)

    # Act
    removed = cache.sweep()

    # Assert
    assert removed == 1
    assert list(cache._entries) == ["test:long"]


def test_build_key():
    assert InMemoryCacheService.build_key("otp", "register:alice@example.com") == (
        "otp:register:alice@example.com"
    )
