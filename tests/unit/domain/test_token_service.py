from datetime import datetime, timedelta, timezone

import jwt
import pytest

from credo.core.exceptions import InvalidTokenError
from credo.domain.services.auth.token import TokenService
from tests.factories.settings import ACCESS_SECRET, REFRESH_SECRET


def make_service(clock=None) -> TokenService:
    kwargs = {"clock": clock} if clock else {}
    return TokenService(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_lifetime=timedelta(minutes=15),
        refresh_lifetime=timedelta(days=7),
        reset_lifetime=timedelta(minutes=30),
        **kwargs,
    )


def test_sign_token_pair_and_verify(token_service):
    # Act
    pair = token_service.sign_token_pair("user-1", "alice@example.com")
    refresh = token_service.verify_refresh(pair.refresh_token)
    access = token_service.verify_access(pair.access_token)

    # Assert
    assert refresh.subject_id == "user-1"
    assert refresh.email == "alice@example.com"
    assert refresh.jti == pair.refresh_jti
    assert access.subject_id == "user-1"
    assert access.jti != refresh.jti


def test_refresh_token_claims(token_service):
    # Arrange
    pair = token_service.sign_token_pair("user-1", "alice@example.com")

    # Act
    payload = jwt.decode(
        pair.refresh_token, REFRESH_SECRET, algorithms=["HS256"], audience="credo:api", issuer="credo"
    )

    # Assert
    assert payload["type"] == "refresh"
    assert payload["exp"] - payload["iat"] == 7 * 24 * 3600


def test_each_pair_gets_a_unique_jti(token_service):
    # Act
    first = token_service.sign_token_pair("user-1", "alice@example.com")
    second = token_service.sign_token_pair("user-1", "alice@example.com")

    # Assert
    assert first.refresh_jti != second.refresh_jti
    assert first.refresh_token != second.refresh_token


def test_access_token_is_not_accepted_as_refresh_token(token_service):
    # Arrange
    pair = token_service.sign_token_pair("user-1", "alice@example.com")

    # Act & Assert
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh(pair.access_token)
    with pytest.raises(InvalidTokenError):
        token_service.verify_access(pair.refresh_token)


def test_expired_refresh_token_is_rejected():
    # Arrange
    past = datetime.now(timezone.utc) - timedelta(days=8)
    pair = make_service(clock=lambda: past).sign_token_pair("user-1", "alice@example.com")

    # Act & Assert
    with pytest.raises(InvalidTokenError):
        make_service().verify_refresh(pair.refresh_token)


def test_token_signed_with_other_secret_is_rejected(token_service):
    # Arrange
    forged = jwt.encode(
        {
            "sub": "user-1",
            "email": "alice@example.com",
            "type": "refresh",
            "iss": "credo",
            "aud": "credo:api",
            "iat": datetime.now(timezone.utc),
            "exp": datetime.now(timezone.utc) + timedelta(days=1),
            "jti": "abc",
        },
        "another-secret-of-sufficient-length-000000",
        algorithm="HS256",
    )

    # Act & Assert
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh(forged)


def test_token_missing_required_claims_is_rejected(token_service):
    # Arrange
    incomplete = jwt.encode(
        {"sub": "user-1", "type": "refresh", "iss": "credo", "aud": "credo:api"},
        REFRESH_SECRET,
        algorithm="HS256",
    )

    # Act & Assert
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh(incomplete)


@pytest.mark.parametrize("raw", ["", "not-a-jwt", None])
def test_garbage_is_rejected(token_service, raw):
    # Act & Assert
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh(raw)


def test_reset_expiry_instant_uses_reset_lifetime():
    # Arrange
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    service = make_service(clock=lambda: now)

    # Assert
    assert service.reset_expiry_instant() == now + timedelta(minutes=30)
    assert service.refresh_expiry_instant() == now + timedelta(days=7)


def test_generate_opaque_secret_is_hex_of_requested_size():
    # Act
    secret = TokenService.generate_opaque_secret(32)

    # Assert
    assert len(secret) == 64
    int(secret, 16)
