import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from credo.core.exceptions import DatabaseError
from credo.infrastructure.maintenance import MaintenanceService


@pytest.fixture
def collaborators():
    rate_limiter = MagicMock()
    rate_limiter.sweep.return_value = 2
    token_store = MagicMock()
    token_store.purge_inactive = AsyncMock(return_value=3)
    password_reset = MagicMock()
    password_reset.purge_expired = AsyncMock(return_value=1)
    memory_cache = MagicMock()
    memory_cache.sweep.return_value = 4
    return rate_limiter, token_store, password_reset, memory_cache


async def test_run_once_reports_each_sweep(collaborators):
    # Arrange
    rate_limiter, token_store, password_reset, memory_cache = collaborators
    service = MaintenanceService(
        rate_limiter, token_store, password_reset, timedelta(days=30), memory_cache=memory_cache
    )

    # Act
    results = await service.run_once()

    # Assert
    assert results == {
        "rate_limit_windows": 2,
        "cache_entries": 4,
        "refresh_tokens": 3,
        "password_resets": 1,
    }
    token_store.purge_inactive.assert_awaited_once_with(timedelta(days=30))


async def test_run_once_without_memory_cache(collaborators):
    rate_limiter, token_store, password_reset, _ = collaborators
    service = MaintenanceService(rate_limiter, token_store, password_reset, timedelta(days=30))

    results = await service.run_once()

    assert "cache_entries" not in results


async def test_run_forever_survives_database_errors_until_cancelled(collaborators):
    # Arrange
    rate_limiter, token_store, password_reset, _ = collaborators
    token_store.purge_inactive.side_effect = DatabaseError()
    service = MaintenanceService(rate_limiter, token_store, password_reset, timedelta(days=30))

    # Act
    task = asyncio.create_task(service.run_forever(0))
    while token_store.purge_inactive.await_count < 2:
        await asyncio.sleep(0)
    task.cancel()

    # Assert
    with pytest.raises(asyncio.CancelledError):
        await task
    assert rate_limiter.sweep.call_count >= 2
