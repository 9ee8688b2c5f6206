"""Ports consumed by the domain services."""

from .cache import CacheCategory, ICacheService
from .notifier import INotifier
from .repositories import IPasswordResetRepository, IRefreshTokenRepository, IUserRepository

__all__ = [
    "CacheCategory",
    "ICacheService",
    "INotifier",
    "IPasswordResetRepository",
    "IRefreshTokenRepository",
    "IUserRepository",
]
