"""Authentication settings: token signing, lifetimes, hashing and password policy.
"""

import logging
from datetime import timedelta

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

from credo.utils.durations import parse_duration

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 32


class AuthSettings(BaseSettings):
    """Defines settings for token issuance, session rotation and credential hashing.

    Lifetimes use short duration strings (``"15m"``, ``"7d"``, ``"30m"``); they
    are parsed while the settings object is built, so a malformed value stops
    the process at startup instead of failing a request later.

    Security Note:
        - Access and refresh tokens are signed with two distinct HMAC secrets of
          at least 32 characters each. A leaked access secret must not allow
          refresh tokens to be forged.
        - Secrets are held as ``SecretStr`` so they are never rendered in logs
          or reprs.
        - BCRYPT_WORK_FACTOR applies to account passwords; TOKEN_HASH_ROUNDS to
          high-entropy refresh/reset secrets, which need less stretching.
    """

    # JWT settings
    JWT_ACCESS_SECRET: SecretStr
    JWT_REFRESH_SECRET: SecretStr
    JWT_ALGORITHM: str = Field(default="HS256", pattern="^HS(256|384|512)$")
    JWT_ISSUER: str = "credo"
    JWT_AUDIENCE: str = "credo:api"
    JWT_LEEWAY_SECONDS: int = Field(ge=0, le=300, default=0)
    JWT_ACCESS_EXPIRES: str = "15m"
    JWT_REFRESH_EXPIRES: str = "7d"
    PASSWORD_RESET_EXPIRES: str = "30m"

    # Hashing
    BCRYPT_WORK_FACTOR: int = Field(ge=4, le=31, default=12)
    TOKEN_HASH_ROUNDS: int = Field(ge=4, le=31, default=10)

    # Refresh token rotation
    MAX_ACTIVE_SESSIONS_SCANNED: int = Field(ge=1, le=500, default=50)
    REFRESH_REUSE_DETECTION: bool = False
    REFRESH_TOKEN_RETENTION_DAYS: int = Field(ge=0, default=30)

    # Password policy
    PASSWORD_MIN_LENGTH: int = Field(ge=6, default=8)
    PASSWORD_MAX_LENGTH: int = Field(le=1024, default=128)
    PASSWORD_REQUIRE_UPPERCASE: bool = True
    PASSWORD_REQUIRE_LOWERCASE: bool = True
    PASSWORD_REQUIRE_DIGIT: bool = True
    PASSWORD_REQUIRE_SPECIAL_CHAR: bool = True

    @field_validator("JWT_ACCESS_EXPIRES", "JWT_REFRESH_EXPIRES", "PASSWORD_RESET_EXPIRES")
    @classmethod
    def validate_duration(cls, value: str) -> str:
        """Rejects lifetimes that cannot be parsed.

        Raises:
            ValueError: If the duration string is malformed or not positive.
        """
        parse_duration(value)
        return value

    @field_validator("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET")
    @classmethod
    def validate_secret_length(cls, value: SecretStr) -> SecretStr:
        if len(value.get_secret_value()) < MIN_SECRET_LENGTH:
            logger.error("JWT secret is shorter than %s characters.", MIN_SECRET_LENGTH)
            raise ValueError(f"JWT secrets must be at least {MIN_SECRET_LENGTH} characters long")
        return value

    @model_validator(mode="after")
    def _validate_distinct_secrets(self) -> "AuthSettings":
        """Ensures access and refresh tokens are signed with different keys.

        Returns:
            Self instance.

        """
        if self.JWT_ACCESS_SECRET.get_secret_value() == self.JWT_REFRESH_SECRET.get_secret_value():
            error_msg = "JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ."
            logger.error(error_msg)
            raise ValueError(error_msg)
        if self.PASSWORD_MIN_LENGTH > self.PASSWORD_MAX_LENGTH:
            raise ValueError("PASSWORD_MIN_LENGTH cannot exceed PASSWORD_MAX_LENGTH")
        return self

    @property
    def access_token_lifetime(self) -> timedelta:
        return parse_duration(self.JWT_ACCESS_EXPIRES)

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return parse_duration(self.JWT_REFRESH_EXPIRES)

    @property
    def password_reset_lifetime(self) -> timedelta:
        return parse_duration(self.PASSWORD_RESET_EXPIRES)

    @property
    def refresh_token_retention(self) -> timedelta:
        """How long revoked refresh-token records are kept before purging."""
        return timedelta(days=self.REFRESH_TOKEN_RETENTION_DAYS)
