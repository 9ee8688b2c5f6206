import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from credo.core.exceptions import InvalidRefreshTokenError
from credo.domain.services.auth.session import SessionService
from credo.domain.services.auth.token import TokenService
from credo.domain.value_objects.tokens import SessionMeta
from tests.factories.settings import ACCESS_SECRET, REFRESH_SECRET


async def test_create_session_persists_refresh_token(session_service, token_repository):
    # Act
    pair = await session_service.create_session("user-1", "alice@example.com", SessionMeta(ip="10.0.0.1"))

    # Assert
    record = await token_repository.get_by_id(pair.refresh_jti)
    assert record.user_id == "user-1"
    assert record.ip == "10.0.0.1"
    assert record.revoked_at is None


async def test_refresh_rotates_and_invalidates_old_token(session_service, token_repository):
    # Arrange
    original = await session_service.create_session("user-1", "alice@example.com")

    # Act
    rotated = await session_service.refresh_session(original.refresh_token)

    # Assert
    assert rotated.refresh_token != original.refresh_token
    assert (await token_repository.get_by_id(original.refresh_jti)).revoked_reason == "rotated"
    with pytest.raises(InvalidRefreshTokenError):
        await session_service.refresh_session(original.refresh_token)


async def test_new_token_works_exactly_once(session_service):
    # Arrange
    original = await session_service.create_session("user-1", "alice@example.com")
    rotated = await session_service.refresh_session(original.refresh_token)

    # Act
    await session_service.refresh_session(rotated.refresh_token)

    # Assert
    with pytest.raises(InvalidRefreshTokenError):
        await session_service.refresh_session(rotated.refresh_token)


async def test_concurrent_refreshes_of_one_token_yield_one_success(session_service):
    # Arrange
    original = await session_service.create_session("user-1", "alice@example.com")

    # Act
    results = await asyncio.gather(
        session_service.refresh_session(original.refresh_token),
        session_service.refresh_session(original.refresh_token),
        return_exceptions=True,
    )

    # Assert
    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidRefreshTokenError)


@pytest.mark.parametrize("raw", ["", "garbage", None])
async def test_invalid_tokens_raise_invalid_refresh_token(session_service, raw):
    # Act & Assert
    with pytest.raises(InvalidRefreshTokenError):
        await session_service.refresh_session(raw)


async def test_expired_refresh_token_is_rejected(token_store):
    # Arrange
    past = datetime.now(timezone.utc) - timedelta(days=8)
    issuing = TokenService(
        ACCESS_SECRET, REFRESH_SECRET, timedelta(minutes=15), timedelta(days=7), timedelta(minutes=30),
        clock=lambda: past,
    )
    service = SessionService(issuing, token_store)
    pair = await service.create_session("user-1", "alice@example.com")
    verifying = TokenService(
        ACCESS_SECRET, REFRESH_SECRET, timedelta(minutes=15), timedelta(days=7), timedelta(minutes=30)
    )

    # Act & Assert
    with pytest.raises(InvalidRefreshTokenError):
        await SessionService(verifying, token_store).refresh_session(pair.refresh_token)


async def test_terminate_session_revokes_every_token(session_service):
    # Arrange
    first = await session_service.create_session("user-1", "alice@example.com")
    second = await session_service.create_session("user-1", "alice@example.com")

    # Act
    revoked = await session_service.terminate_session("user-1")

    # Assert
    assert revoked == 2
    for pair in (first, second):
        with pytest.raises(InvalidRefreshTokenError):
            await session_service.refresh_session(pair.refresh_token)


async def test_terminate_specific_session(session_service):
    # Arrange
    kept = await session_service.create_session("user-1", "alice@example.com")
    ended = await session_service.create_session("user-1", "alice@example.com")

    # Act
    result = await session_service.terminate_specific_session(ended.refresh_jti)

    # Assert
    assert result is True
    assert await session_service.terminate_specific_session(ended.refresh_jti) is False
    await session_service.refresh_session(kept.refresh_token)


async def test_reuse_detection_revokes_the_whole_family(token_service, token_store):
    # Arrange
    service = SessionService(token_service, token_store, reuse_detection=True)
    original = await service.create_session("user-1", "alice@example.com")
    rotated = await service.refresh_session(original.refresh_token)

    # Act
    with pytest.raises(InvalidRefreshTokenError):
        await service.refresh_session(original.refresh_token)

    # Assert
    with pytest.raises(InvalidRefreshTokenError):
        await service.refresh_session(rotated.refresh_token)


async def test_replay_without_reuse_detection_keeps_other_sessions(session_service):
    # Arrange
    original = await session_service.create_session("user-1", "alice@example.com")
    rotated = await session_service.refresh_session(original.refresh_token)

    # Act
    with pytest.raises(InvalidRefreshTokenError):
        await session_service.refresh_session(original.refresh_token)

    # Assert
    await session_service.refresh_session(rotated.refresh_token)


async def test_refresh_accepts_token_older_than_many_newer_sessions(session_service, token_repository):
    # Arrange
    first = await session_service.create_session("user-1", "alice@example.com")
    token_repository._store.refresh_tokens[first.refresh_jti].created_at -= timedelta(minutes=5)
    for _ in range(50):
        await session_service.create_session("user-1", "alice@example.com")

    # Act
    rotated = await session_service.refresh_session(first.refresh_token)

    # Assert
    assert rotated.refresh_jti != first.refresh_jti
    assert (await token_repository.get_by_id(first.refresh_jti)).revoked_reason == "rotated"
