import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import EmailStr, field_validator
from sqlalchemy import DateTime, Enum as SAEnum, text
from sqlmodel import Column, Field, Index, SQLModel, String


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Represents the role of a user within the system.

    Attributes:
        SUPERADMIN: Operates the platform across tenants.
        ADMIN: Administers a single tenant.
        USER: A standard account.
    """

    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    USER = "user"


class UserBase(SQLModel):
    """Profile fields shared by the table model and its public projection."""

    email: EmailStr = Field(
        sa_column=Column(String(254), unique=True, index=True, nullable=False),
        description="Unique, case-insensitive email address used for login.",
    )
    display_name: Optional[str] = Field(default=None, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=255)
    avatar_url: Optional[str] = Field(default=None, max_length=512)
    tenant_id: Optional[str] = Field(default=None, max_length=64, index=True)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        """Lower-cases the email address so uniqueness is case-insensitive."""
        return value.strip().lower()


class User(UserBase, table=True):
    """Represents a User entity and acts as an Aggregate Root.

    A user owns zero or more refresh-token records and password-reset records;
    changing the password revokes all of them.

    Attributes:
        id: Opaque unique identifier (UUID string).
        email: A unique, case-insensitive email address.
        password_hash: The bcrypt hash of the password. Never leaves the
            service boundary; public reads use :class:`UserRead`.
        role: The user's role.
        created_at: When the account was created.
        updated_at: When the record last changed (password changes included).
    """

    __tablename__ = "users"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36,
        description="The unique identifier for the user.",
    )
    password_hash: str = Field(
        max_length=255,
        description="Bcrypt-hashed password.",
    )
    role: Role = Field(
        default=Role.USER,
        sa_column=Column(SAEnum(Role, name="role"), nullable=False, default=Role.USER),
        description="The user's role.",
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            server_default=text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    __table_args__ = (
        Index("ix_users_email_lower", text("lower(email)")),
        {"extend_existing": True},
    )


class UserRead(UserBase):
    """Public projection of a user. Carries no password hash."""

    id: str
    role: Role
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, user: User) -> "UserRead":
        return cls.model_validate(user, from_attributes=True)


class UserProfile(SQLModel):
    """Optional profile details supplied at registration."""

    display_name: Optional[str] = Field(default=None, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=255)
    avatar_url: Optional[str] = Field(default=None, max_length=512)
    tenant_id: Optional[str] = Field(default=None, max_length=64)
