"""Domain entities persisted by the service."""

from .password_reset import PasswordResetRecord
from .refresh_token import RefreshTokenRecord, RevocationReason
from .user import Role, User, UserProfile, UserRead

__all__ = [
    "PasswordResetRecord",
    "RefreshTokenRecord",
    "RevocationReason",
    "Role",
    "User",
    "UserProfile",
    "UserRead",
]
