"""End-to-end flows through the wired service with in-memory adapters."""

import pytest
import pytest_asyncio

from credo.core.exceptions import (
    InvalidCodeError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidRefreshTokenError,
    RateLimitExceededError,
    TooManyAttemptsError,
)
from credo.domain.value_objects.tokens import SessionMeta
from credo.infrastructure.dependency_injection import build_container
from tests.factories.notifier import RecordingNotifier
from tests.factories.settings import STRONG_PASSWORD, make_settings

EMAIL = "carol@example.com"
NEW_PASSWORD = "N3w!Passw0rd"
META = SessionMeta(ip="203.0.113.7", user_agent="pytest")

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest_asyncio.fixture
async def container(notifier):
    container = build_container(make_settings(), backend="memory", notifier=notifier)
    yield container
    await container.close()

@pytest_asyncio.fixture
async def limited_container(notifier):
    container = build_container(
        make_settings(RATE_LIMIT_ENABLED=True), backend="memory", notifier=notifier
    )
    yield container
    await container.close()

async def register(container, notifier, email=EMAIL):
    await container.auth.register_start(email, META)
    return await container.auth.register_verify(
        email, notifier.last_code(email), STRONG_PASSWORD, meta=META
    )

async def test_register_login_refresh_logout(container, notifier):
    # Register
    registered = await register(container, notifier)
    assert registered.user.email == EMAIL
    claims = container.token_service.verify_access(registered.access_token)
    assert claims.subject_id == registered.user.id

    # Login
    session = await container.auth.login(EMAIL, STRONG_PASSWORD, META)

    # Refresh rotates the token; the old one stops working
    rotated = await container.auth.refresh(session.refresh_token, META)
    assert rotated.refresh_token != session.refresh_token
    with pytest.raises(InvalidRefreshTokenError):
        await container.auth.refresh(session.refresh_token, META)

    # Logout revokes every session, including the registration one
    revoked = await container.auth.logout(registered.user.id, META)
    assert revoked == 2
    with pytest.raises(InvalidRefreshTokenError):
        await container.auth.refresh(rotated.refresh_token, META)
    with pytest.raises(InvalidRefreshTokenError):
        await container.auth.refresh(registered.refresh_token, META)

    # The profile is still readable
    profile = await container.auth.me(registered.user.id)
    assert profile.email == EMAIL

async def test_reset_code_locks_after_five_wrong_attempts(container, notifier):
    # Arrange
    await register(container, notifier)
    await container.auth.request_reset(EMAIL, META)
    code = notifier.last_code(EMAIL)
    wrong = "000000" if code != "000000" else "111111"

    # Act
    for _ in range(5):
        with pytest.raises(InvalidCodeError):
            await container.auth.reset_verify(EMAIL, wrong, META)

    # Assert
    with pytest.raises(TooManyAttemptsError):
        await container.auth.reset_verify(EMAIL, code, META)

async def test_reset_with_code_replaces_password_and_revokes_sessions(container, notifier):
    # Arrange
    registered = await register(container, notifier)
    await container.auth.request_reset(EMAIL, META)

    # Act
    reset_token = await container.auth.reset_verify(EMAIL, notifier.last_code(EMAIL), META)
    await container.auth.reset_confirm(reset_token, NEW_PASSWORD, META)

    # Assert
    with pytest.raises(InvalidOrExpiredTokenError):
        await container.auth.reset_confirm(reset_token, NEW_PASSWORD, META)
    with pytest.raises(InvalidRefreshTokenError):
        await container.auth.refresh(registered.refresh_token, META)
    with pytest.raises(InvalidCredentialsError):
        await container.auth.login(EMAIL, STRONG_PASSWORD, META)
    assert (await container.auth.login(EMAIL, NEW_PASSWORD, META)).user.email == EMAIL

async def test_reset_link_is_single_use(container, notifier):
    # Arrange
    await register(container, notifier)
    await container.auth.request_reset_link(EMAIL, META)
    token = notifier.last_reset_token(EMAIL)

    # Act
    await container.auth.confirm_reset_link(token, NEW_PASSWORD, META)

    # Assert
    with pytest.raises(InvalidOrExpiredTokenError):
        await container.auth.confirm_reset_link(token, "An0ther!Passw0rd", META)
    assert (await container.auth.login(EMAIL, NEW_PASSWORD, META)).user.email == EMAIL

async def test_reset_link_for_unknown_email_sends_nothing(container, notifier):
    await container.auth.request_reset_link("nobody@example.com", META)
    assert notifier.links == []

async def test_rate_limit_blocks_sixth_login(limited_container):
    # Arrange
    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            await limited_container.auth.login(EMAIL, "Wr0ng!pass", META)

    # Act & Assert
    with pytest.raises(RateLimitExceededError) as exc_info:
        await limited_container.auth.login(EMAIL, "Wr0ng!pass", META)
    assert exc_info.value.retry_after > 0

async def test_session_lifecycle_with_default_rate_limits(limited_container, notifier):
    # Arrange
    registered = await register(limited_container, notifier)
    session = await limited_container.auth.login(EMAIL, STRONG_PASSWORD, META)

    # Act
    rotated = await limited_container.auth.refresh(session.refresh_token, META)
    with pytest.raises(InvalidRefreshTokenError):
        await limited_container.auth.refresh(session.refresh_token, META)
    revoked = await limited_container.auth.logout(registered.user.id, META)

    # Assert
    assert revoked == 2
    with pytest.raises(InvalidRefreshTokenError):
        await limited_container.auth.refresh(rotated.refresh_token, META)

async def test_reset_lockout_with_default_rate_limits(limited_container, notifier):
    # Arrange
    await register(limited_container, notifier)
    await limited_container.auth.request_reset(EMAIL, META)
    code = notifier.last_code(EMAIL)
    wrong = "000000" if code != "000000" else "111111"

    # Act
    for _ in range(5):
        with pytest.raises(InvalidCodeError):
            await limited_container.auth.reset_verify(EMAIL, wrong, META)

    # Assert
    with pytest.raises(TooManyAttemptsError):
        await limited_container.auth.reset_verify(EMAIL, code, META)

async def test_register_after_wrong_codes_with_default_rate_limits(limited_container, notifier):
    # Arrange
    await limited_container.auth.register_start(EMAIL, META)
    code = notifier.last_code(EMAIL)
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(4):
        with pytest.raises(InvalidCodeError):
            await limited_container.auth.register_verify(EMAIL, wrong, STRONG_PASSWORD, meta=META)

    # Act
    registered = await limited_container.auth.register_verify(EMAIL, code, STRONG_PASSWORD, meta=META)

    # Assert
    assert registered.user.email == EMAIL

async def test_maintenance_sweep_purges_nothing_live(container, notifier):
    await register(container, notifier)
    results = await container.maintenance.run_once()
    assert results["refresh_tokens"] == 0
