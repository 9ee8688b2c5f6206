from datetime import timedelta

import pytest
from pydantic import ValidationError

from credo.core.config import Settings
from tests.factories.settings import ACCESS_SECRET, REFRESH_SECRET, make_settings


def test_settings_defaults():
    # Act
    settings = make_settings()

    # Assert
    assert settings.access_token_lifetime == timedelta(minutes=15)
    assert settings.refresh_token_lifetime == timedelta(days=7)
    assert settings.password_reset_lifetime == timedelta(minutes=30)
    assert settings.refresh_token_retention == timedelta(days=30)
    assert settings.OTP_MAX_ATTEMPTS == 5
    assert settings.OTP_CODE_TTL_SECONDS == 600
    assert settings.OTP_RESEND_COOLDOWN_SECONDS == 60
    assert settings.REFRESH_REUSE_DETECTION is False


def test_test_environment_forces_email_test_mode():
    # Act
    settings = make_settings(EMAIL_TEST_MODE=False)

    # Assert
    assert settings.EMAIL_TEST_MODE is True


def test_malformed_duration_fails_at_construction():
    # Act & Assert
    with pytest.raises(ValidationError, match="Invalid duration"):
        make_settings(JWT_ACCESS_EXPIRES="fifteen minutes")


def test_non_positive_duration_fails_at_construction():
    # Act & Assert
    with pytest.raises(ValidationError):
        make_settings(JWT_REFRESH_EXPIRES="0d")


def test_short_jwt_secret_is_rejected():
    # Act & Assert
    with pytest.raises(ValidationError, match="at least"):
        make_settings(JWT_ACCESS_SECRET="too-short")


def test_identical_jwt_secrets_are_rejected():
    # Act & Assert
    with pytest.raises(ValidationError, match="must differ"):
        make_settings(JWT_REFRESH_SECRET=ACCESS_SECRET)


def test_jwt_secrets_are_required(monkeypatch):
    # Arrange
    monkeypatch.delenv("JWT_ACCESS_SECRET", raising=False)
    monkeypatch.delenv("JWT_REFRESH_SECRET", raising=False)

    # Act & Assert
    with pytest.raises(ValidationError):
        Settings(_env_file=None, APP_ENV="test")


def test_secrets_are_not_exposed_in_repr():
    # Act
    settings = make_settings()

    # Assert
    assert ACCESS_SECRET not in repr(settings)
    assert REFRESH_SECRET not in repr(settings)


def test_redis_url_is_assembled_from_parts():
    # Act
    settings = make_settings(REDIS_HOST="cache.internal", REDIS_PORT=6380, REDIS_DB=2)

    # Assert
    assert settings.REDIS_URL == "redis://cache.internal:6380/2"


def test_database_url_uses_asyncpg_driver():
    # Act
    settings = make_settings(POSTGRES_HOST="db.internal", POSTGRES_DB="credo_test")

    # Assert
    assert settings.DATABASE_URL.startswith("postgresql+asyncpg://")
    assert "db.internal" in settings.DATABASE_URL
    assert settings.DATABASE_URL.endswith("/credo_test")


def test_cache_ttls_by_category():
    # Act
    ttls = make_settings().cache_ttls

    # Assert
    assert ttls == {"auth": 300, "general": 600}


def test_log_level_is_normalized_and_validated():
    # Act
    settings = make_settings(LOG_LEVEL="debug")

    # Assert
    assert settings.LOG_LEVEL == "DEBUG"
    with pytest.raises(ValidationError):
        make_settings(LOG_LEVEL="chatty")


def test_production_requires_smtp_credentials():
    # Act & Assert
    with pytest.raises(ValidationError):
        make_settings(APP_ENV="production", REDIS_PASSWORD="redis-pass")
