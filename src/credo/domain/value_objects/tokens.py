"""Token and session value objects passed between the auth services."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class SessionMeta:
    """Request metadata recorded with a refresh token.

    Attributes:
        user_agent: The client's User-Agent header, if any.
        ip: The client's address, if known. Also used for rate-limit keys.
    """

    user_agent: Optional[str] = None
    ip: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TokenPair:
    """A freshly signed access/refresh token pair.

    Only ``access_token`` and ``refresh_token`` are meant for callers; the
    refresh token's ``jti`` and expiry are used to persist its record.
    """

    access_token: str
    refresh_token: str
    refresh_jti: str = field(repr=False)
    refresh_expires_at: datetime = field(repr=False)

    def __repr__(self) -> str:
        return "TokenPair(access_token=[redacted], refresh_token=[redacted])"


@dataclass(frozen=True, slots=True)
class RefreshClaims:
    """The verified claims of a refresh token."""

    subject_id: str
    email: str
    jti: str


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """The verified claims of an access token."""

    subject_id: str
    email: str
    jti: str
    expires_at: datetime
