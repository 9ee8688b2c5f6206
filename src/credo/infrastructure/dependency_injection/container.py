"""Service wiring.

This module builds the full object graph from a :class:`Settings` instance.
Domain services only ever see the repository, cache and notifier interfaces;
the container decides which adapters stand behind them:

* ``memory`` backend: in-process repositories and cache. Used by tests and
  single-process deployments.
* ``sql`` backend: PostgreSQL through async SQLAlchemy, and Redis.

Either way, the notifier is the SMTP :class:`EmailNotifier` unless one is
passed in. Building a container also configures logging.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Literal, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from structlog import get_logger

from credo.core.config import Settings
from credo.core.logging import configure_logging
from credo.core.rate_limiting import FixedWindowRateLimiter
from credo.domain.interfaces.cache import ICacheService
from credo.domain.interfaces.notifier import INotifier
from credo.domain.interfaces.repositories import (
    IPasswordResetRepository,
    IRefreshTokenRepository,
    IUserRepository,
)
from credo.domain.services.auth.authentication import AuthService
from credo.domain.services.auth.hashing import PasswordHasher
from credo.domain.services.auth.otp import OtpChallengeService
from credo.domain.services.auth.password_reset import PasswordResetService
from credo.domain.services.auth.refresh_token_store import RefreshTokenStore
from credo.domain.services.auth.session import SessionService
from credo.domain.services.auth.token import TokenService
from credo.domain.services.auth.user_credentials import UserCredentialService
from credo.domain.value_objects.password import PasswordPolicy
from credo.infrastructure.cache import InMemoryCacheService, RedisCacheService
from credo.infrastructure.database.async_db import create_engine_from_settings, create_session_factory
from credo.infrastructure.maintenance import MaintenanceService
from credo.infrastructure.repositories import (
    InMemoryPasswordResetRepository,
    InMemoryRefreshTokenRepository,
    InMemoryStore,
    InMemoryUserRepository,
    PasswordResetRepository,
    RefreshTokenRepository,
    UserRepository,
)
from credo.infrastructure.services.email.email_service import EmailNotifier

logger = get_logger(__name__)

Backend = Literal["memory", "sql"]


@dataclass
class Container:
    """The wired services plus the resources that need closing."""

    settings: Settings
    auth: AuthService
    credentials: UserCredentialService
    sessions: SessionService
    otp: OtpChallengeService
    password_reset: PasswordResetService
    token_service: TokenService
    rate_limiter: FixedWindowRateLimiter
    hasher: PasswordHasher
    cache: ICacheService
    notifier: INotifier
    maintenance: MaintenanceService
    engine: Optional[AsyncEngine] = None
    _maintenance_task: Optional[asyncio.Task] = field(default=None, repr=False)

    def start_maintenance(self) -> asyncio.Task:
        """Schedules the periodic sweeps on the running event loop."""
        if self._maintenance_task is None or self._maintenance_task.done():
            self._maintenance_task = asyncio.create_task(
                self.maintenance.run_forever(self.settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)
            )
        return self._maintenance_task

    async def close(self) -> None:
        """Stops the sweeps and releases connections and worker threads."""
        if self._maintenance_task is not None:
            self._maintenance_task.cancel()
            try:
                await self._maintenance_task
            except asyncio.CancelledError:
                pass
            self._maintenance_task = None
        if isinstance(self.cache, RedisCacheService):
            await self.cache.close()
        if self.engine is not None:
            await self.engine.dispose()
        self.hasher.shutdown()
        logger.info("Container closed")


def _memory_adapters(settings: Settings):
    store = InMemoryStore()
    cache = InMemoryCacheService(key_prefix=settings.CACHE_KEY_PREFIX, ttls=settings.cache_ttls)
    return (
        InMemoryUserRepository(store),
        InMemoryRefreshTokenRepository(store),
        InMemoryPasswordResetRepository(store),
        cache,
        None,
    )


def _sql_adapters(settings: Settings):
    engine = create_engine_from_settings(settings)
    session_factory = create_session_factory(engine)
    return (
        UserRepository(session_factory),
        RefreshTokenRepository(session_factory),
        PasswordResetRepository(session_factory),
        RedisCacheService.from_settings(settings),
        engine,
    )


def build_container(
    settings: Settings,
    backend: Backend = "sql",
    notifier: Optional[INotifier] = None,
) -> Container:
    """Builds every service from ``settings``.

    Args:
        settings: Validated settings.
        backend: ``"sql"`` for PostgreSQL and Redis, ``"memory"`` for
            in-process adapters.
        notifier: Overrides the SMTP notifier.

    Returns:
        Container: The wired services.
    """
    configure_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    if backend == "memory":
        adapters = _memory_adapters(settings)
    elif backend == "sql":
        adapters = _sql_adapters(settings)
    else:
        raise ValueError(f"Unknown backend: {backend}")

    user_repository: IUserRepository
    token_repository: IRefreshTokenRepository
    reset_repository: IPasswordResetRepository
    user_repository, token_repository, reset_repository, cache, engine = adapters

    notifier = notifier or EmailNotifier(settings)
    hasher = PasswordHasher(
        password_rounds=settings.BCRYPT_WORK_FACTOR,
        secret_rounds=settings.TOKEN_HASH_ROUNDS,
        max_workers=settings.HASHING_MAX_WORKERS,
    )
    token_service = TokenService.from_settings(settings)
    rate_limiter = FixedWindowRateLimiter.from_settings(settings)

    credentials = UserCredentialService(
        user_repository, hasher, password_policy=PasswordPolicy.from_settings(settings)
    )
    token_store = RefreshTokenStore(
        token_repository, hasher, max_candidates=settings.MAX_ACTIVE_SESSIONS_SCANNED
    )
    sessions = SessionService(
        token_service, token_store, reuse_detection=settings.REFRESH_REUSE_DETECTION
    )
    otp = OtpChallengeService.from_settings(settings, cache, notifier)
    password_reset = PasswordResetService(
        reset_repository,
        credentials,
        token_service,
        hasher,
        notifier,
        reset_url_base=settings.PASSWORD_RESET_URL_BASE,
    )
    auth = AuthService(
        credentials,
        sessions,
        otp,
        password_reset,
        rate_limiter,
        default_timeout=settings.OPERATION_TIMEOUT_SECONDS,
    )
    maintenance = MaintenanceService(
        rate_limiter,
        token_store,
        password_reset,
        retention=settings.refresh_token_retention,
        memory_cache=cache if isinstance(cache, InMemoryCacheService) else None,
    )

    logger.info("Container built", backend=backend, environment=settings.APP_ENV)
    return Container(
        settings=settings,
        auth=auth,
        credentials=credentials,
        sessions=sessions,
        otp=otp,
        password_reset=password_reset,
        token_service=token_service,
        rate_limiter=rate_limiter,
        hasher=hasher,
        cache=cache,
        notifier=notifier,
        maintenance=maintenance,
        engine=engine,
    )
