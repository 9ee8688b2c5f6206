import pytest
import pytest_asyncio

from credo.core.config import Settings
from credo.core.rate_limiting import FixedWindowRateLimiter
from credo.domain.services.auth.authentication import AuthService
from credo.domain.services.auth.hashing import PasswordHasher
from credo.domain.services.auth.otp import OtpChallengeService
from credo.domain.services.auth.password_reset import PasswordResetService
from credo.domain.services.auth.refresh_token_store import RefreshTokenStore
from credo.domain.services.auth.session import SessionService
from credo.domain.services.auth.token import TokenService
from credo.domain.services.auth.user_credentials import UserCredentialService
from credo.domain.value_objects.password import PasswordPolicy
from credo.infrastructure.cache import InMemoryCacheService
from credo.infrastructure.repositories import (
    InMemoryPasswordResetRepository,
    InMemoryRefreshTokenRepository,
    InMemoryStore,
    InMemoryUserRepository,
)
from tests.factories.notifier import RecordingNotifier
from tests.factories.settings import STRONG_PASSWORD, make_settings


@pytest.fixture
def settings() -> Settings:
    """Provides test settings with cheap bcrypt rounds and rate limiting off."""
    return make_settings()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def hasher():
    """Provides a PasswordHasher with minimum bcrypt cost."""
    hasher = PasswordHasher(password_rounds=4, secret_rounds=4, max_workers=2)
    yield hasher
    hasher.shutdown()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def user_repository(store):
    return InMemoryUserRepository(store)


@pytest.fixture
def token_repository(store):
    return InMemoryRefreshTokenRepository(store)


@pytest.fixture
def reset_repository(store):
    return InMemoryPasswordResetRepository(store)


@pytest.fixture
def cache() -> InMemoryCacheService:
    return InMemoryCacheService()


@pytest.fixture
def token_service(settings) -> TokenService:
    return TokenService.from_settings(settings)


@pytest.fixture
def credentials(user_repository, hasher, settings) -> UserCredentialService:
    return UserCredentialService(user_repository, hasher, PasswordPolicy.from_settings(settings))


@pytest.fixture
def token_store(token_repository, hasher) -> RefreshTokenStore:
    return RefreshTokenStore(token_repository, hasher)


@pytest.fixture
def session_service(token_service, token_store) -> SessionService:
    return SessionService(token_service, token_store)


@pytest.fixture
def otp_service(cache, notifier) -> OtpChallengeService:
    return OtpChallengeService(cache, notifier, code_generator=lambda: "123456")


@pytest.fixture
def password_reset_service(
    reset_repository, credentials, token_service, hasher, notifier, settings
) -> PasswordResetService:
    return PasswordResetService(
        reset_repository,
        credentials,
        token_service,
        hasher,
        notifier,
        reset_url_base=settings.PASSWORD_RESET_URL_BASE,
    )


@pytest.fixture
def rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(enabled=False)


@pytest.fixture
def auth_service(
    credentials, session_service, otp_service, password_reset_service, rate_limiter
) -> AuthService:
    return AuthService(
        credentials,
        session_service,
        otp_service,
        password_reset_service,
        rate_limiter,
        default_timeout=5.0,
    )


@pytest_asyncio.fixture
async def registered_user(credentials):
    """Provides a stored user with the password STRONG_PASSWORD."""
    return await credentials.create_user("alice@example.com", STRONG_PASSWORD)
