"""Persistence adapters: SQLAlchemy for production, in-memory for tests."""

from .memory import (
    InMemoryPasswordResetRepository,
    InMemoryRefreshTokenRepository,
    InMemoryStore,
    InMemoryUserRepository,
)
from .password_reset_repository import PasswordResetRepository
from .refresh_token_repository import RefreshTokenRepository
from .user_repository import UserRepository

__all__ = [
    "InMemoryPasswordResetRepository",
    "InMemoryRefreshTokenRepository",
    "InMemoryStore",
    "InMemoryUserRepository",
    "PasswordResetRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
