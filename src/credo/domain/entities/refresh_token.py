from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Column, Field, Index, SQLModel


class RevocationReason(str, Enum):
    """Why a refresh-token record stopped being active."""

    ROTATED = "rotated"
    LOGOUT = "logout"
    PASSWORD_RESET = "password_reset"
    REUSE_DETECTED = "reuse_detected"


def as_utc(value: datetime) -> datetime:
    """Treats naive timestamps read back from the database as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RefreshTokenRecord(SQLModel, table=True):
    """A persisted, hashed refresh token.

    The record id equals the ``jti`` claim of the refresh token it stores.
    Only a salted one-way hash of the raw token is kept, so a database leak
    does not yield usable tokens; the trade-off is that lookups by value are
    impossible and matching verifies candidates one by one.

    A record whose ``revoked_at`` is set, or whose ``expires_at`` has passed,
    is inactive and never authorizes a refresh. Records are revoked rather
    than deleted so that replayed tokens can be recognized; a periodic sweep
    purges them after a retention period.

    Attributes:
        id: Record id, equal to the token's ``jti``.
        user_id: The owning user.
        hashed_token: bcrypt_sha256 hash of the raw refresh token.
        user_agent: Client User-Agent at issuance.
        ip: Client address at issuance.
        created_at: Issuance time.
        expires_at: Expiry of the token.
        revoked_at: When the record was revoked, if it was.
        revoked_reason: Why it was revoked.
    """

    __tablename__ = "refresh_tokens"

    id: str = Field(primary_key=True, max_length=64)
    user_id: str = Field(foreign_key="users.id", nullable=False, max_length=36)
    hashed_token: str = Field(nullable=False, max_length=255)
    user_agent: Optional[str] = Field(default=None, max_length=512)
    ip: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    revoked_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    revoked_reason: Optional[str] = Field(default=None, max_length=32)

    __table_args__ = (
        Index("ix_refresh_tokens_user_active", "user_id", "revoked_at", "expires_at"),
        {"extend_existing": True},
    )

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Returns True while the record is neither revoked nor expired."""
        now = now or datetime.now(timezone.utc)
        return self.revoked_at is None and as_utc(self.expires_at) > now
