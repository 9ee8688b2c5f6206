import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Column, Field, Index, SQLModel

from credo.domain.entities.refresh_token import as_utc


class PasswordResetRecord(SQLModel, table=True):
    """A single-use password reset link.

    The link token sent to the user is ``<id>.<secret>``; only a hash of the
    secret is stored. ``used_at`` is set at most once, and a used or expired
    record cannot satisfy a reset.

    Attributes:
        id: Record id, the public half of the link token.
        user_id: The user whose password the link resets.
        token_hash: bcrypt_sha256 hash of the secret half of the token.
        created_at: When the link was issued.
        expires_at: When the link stops working.
        used_at: When the link was redeemed or invalidated.
    """

    __tablename__ = "password_resets"

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True, max_length=64)
    user_id: str = Field(foreign_key="users.id", nullable=False, index=True, max_length=36)
    token_hash: str = Field(nullable=False, max_length=255)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    used_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    __table_args__ = (
        Index("ix_password_resets_expires_at", "expires_at"),
        {"extend_existing": True},
    )

    def is_redeemable(self, now: Optional[datetime] = None) -> bool:
        """Returns True while the link is unused and unexpired."""
        now = now or datetime.now(timezone.utc)
        return self.used_at is None and as_utc(self.expires_at) > now
