"""Periodic housekeeping.

Nothing in the request path depends on these sweeps: expired rate-limit
windows, cache entries, refresh tokens and reset links are all rejected when
read. The sweeps only bound memory and table growth.
"""

import asyncio
from datetime import timedelta
from typing import Dict, Optional

from structlog import get_logger

from credo.core.exceptions import ServiceUnavailableError
from credo.core.rate_limiting import FixedWindowRateLimiter
from credo.domain.services.auth.password_reset import PasswordResetService
from credo.domain.services.auth.refresh_token_store import RefreshTokenStore
from credo.infrastructure.cache.memory_cache import InMemoryCacheService

logger = get_logger(__name__)


class MaintenanceService:
    """Purges expired state on demand or on a fixed interval.

    Attributes:
        rate_limiter (FixedWindowRateLimiter): Window table to sweep.
        token_store (RefreshTokenStore): Refresh-token records to purge.
        password_reset (PasswordResetService): Reset links to purge.
        retention (timedelta): How long revoked refresh tokens are kept.
        memory_cache (Optional[InMemoryCacheService]): Swept when the process
            runs without Redis.
    """

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter,
        token_store: RefreshTokenStore,
        password_reset: PasswordResetService,
        retention: timedelta,
        memory_cache: Optional[InMemoryCacheService] = None,
    ):
        self.rate_limiter = rate_limiter
        self.token_store = token_store
        self.password_reset = password_reset
        self.retention = retention
        self.memory_cache = memory_cache

    async def run_once(self) -> Dict[str, int]:
        """Runs every sweep once and returns how many items each removed.

        Raises:
            ServiceUnavailableError: If the database is unavailable. The
                in-process sweeps have already run by then.
        """
        results = {"rate_limit_windows": self.rate_limiter.sweep()}
        if self.memory_cache is not None:
            results["cache_entries"] = self.memory_cache.sweep()
        results["refresh_tokens"] = await self.token_store.purge_inactive(self.retention)
        results["password_resets"] = await self.password_reset.purge_expired()
        logger.info("Maintenance sweep completed", **results)
        return results

    async def run_forever(self, interval_seconds: float) -> None:
        """Sweeps every ``interval_seconds`` until cancelled.

        A failed sweep is logged and retried at the next interval.
        """
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                try:
                    await self.run_once()
                except ServiceUnavailableError as exc:
                    logger.warning("Maintenance sweep failed", error_code=exc.code, error=exc.message)
        except asyncio.CancelledError:
            logger.info("Maintenance task cancelled")
            raise
