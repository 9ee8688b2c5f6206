from __future__ import annotations

"""Centralized, structured exception hierarchy for Credo.

Every error raised by the service derives from :class:`CredoError` and carries
a machine-readable ``code`` for programmatic handling and a human-readable
``message`` for logging and caller feedback.

The hierarchy is designed to:
- Keep authentication failures low-information (no account enumeration).
- Separate caller mistakes (validation, authentication, rate limits) from
  collaborator failures (database, cache, e-mail), which all derive from
  :class:`ServiceUnavailableError`.
- Map cleanly to transport status codes in whatever layer fronts the service.

Messages never contain passwords, password hashes, token secrets or OTP codes.
"""

from typing import Final

__all__: Final = [
    "CredoError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "InvalidRefreshTokenError",
    "InvalidOrExpiredTokenError",
    "InvalidCodeError",
    "ValidationError",
    "PasswordPolicyError",
    "RateLimitError",
    "RateLimitExceededError",
    "TooManyAttemptsError",
    "ConflictError",
    "EmailAlreadyInUseError",
    "ChallengeNotFoundError",
    "UserNotFoundError",
    "ServiceUnavailableError",
    "DatabaseError",
    "CacheError",
    "EmailServiceError",
]


class CredoError(Exception):
    """Base exception class for all custom errors in the Credo service.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code for identifying
                    the type of error programmatically.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    # A concise, structured representation used by loggers & transport handlers.
    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Auth-related errors
# ---------------------------------------------------------------------------


class AuthenticationError(CredoError):
    """Raised for general authentication failures.

    This exception is the base for more specific authentication-related
    errors. It typically maps to a `401 Unauthorized` status code.
    """

    def __init__(self, message: str = "Authentication failed", code: str = "authentication_error"):
        super().__init__(message, code)


class InvalidCredentialsError(AuthenticationError):
    """Raised when an email/password pair does not authenticate.

    The same error (and message) is used for "no such account" and "wrong
    password" so callers cannot probe which addresses are registered.
    """

    def __init__(self, message: str = "Invalid email or password", code: str = "invalid_credentials"):
        super().__init__(message, code)


class InvalidTokenError(AuthenticationError):
    """Raised when a signed token is malformed, expired, mis-keyed or incomplete."""

    def __init__(self, message: str = "Invalid token", code: str = "invalid_token"):
        super().__init__(message, code)


class InvalidRefreshTokenError(AuthenticationError):
    """Raised when a refresh token cannot be exchanged for a new pair.

    Covers wrong, expired, revoked and already-rotated tokens alike; the
    distinction is intentionally not surfaced.
    """

    def __init__(self, message: str = "Invalid refresh token", code: str = "invalid_refresh_token"):
        super().__init__(message, code)


class InvalidOrExpiredTokenError(AuthenticationError):
    """Raised when a password reset token is unknown, used or expired."""

    def __init__(
        self, message: str = "Invalid or expired token", code: str = "invalid_or_expired_token"
    ):
        super().__init__(message, code)


class InvalidCodeError(AuthenticationError):
    """Raised when a one-time code does not match the pending challenge."""

    def __init__(self, message: str = "Invalid code", code: str = "invalid_code"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Validation errors (typically map to 400 Bad Request)
# ---------------------------------------------------------------------------


class ValidationError(CredoError):
    """Raised when input data fails validation (email format, profile fields)."""

    def __init__(self, message: str, code: str = "validation_error"):
        super().__init__(message, code)


class PasswordPolicyError(ValidationError):
    """Raised when a new password does not satisfy the password policy."""

    def __init__(self, message: str, code: str = "password_policy_error"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Rate limiting errors (typically map to 429 Too Many Requests)
# ---------------------------------------------------------------------------


class RateLimitError(CredoError):
    """Base class for errors telling the caller to back off."""

    def __init__(self, message: str, code: str = "rate_limit_error"):
        super().__init__(message, code)


class RateLimitExceededError(RateLimitError):
    """Raised when an identifier exceeds the request budget of its window.

    Attributes:
        retry_after (int): Seconds until the current window resets.
    """

    def __init__(
        self,
        message: str = "Too many requests, please try again later",
        code: str = "rate_limit_exceeded",
        retry_after: int = 0,
    ):
        super().__init__(message, code)
        self.retry_after = retry_after


class TooManyAttemptsError(RateLimitError):
    """Raised when a one-time code challenge has used up its verify attempts.

    A fresh code has to be requested before verification can succeed again.
    """

    def __init__(
        self,
        message: str = "Too many attempts, request a new code",
        code: str = "too_many_attempts",
    ):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# State conflicts (typically map to 409 Conflict / 404 Not Found)
# ---------------------------------------------------------------------------


class ConflictError(CredoError):
    """Raised when a request conflicts with the current state of the system."""

    def __init__(self, message: str, code: str = "conflict"):
        super().__init__(message, code)


class EmailAlreadyInUseError(ConflictError):
    """Raised when registering an email address that already has an account."""

    def __init__(self, message: str = "Email already in use", code: str = "email_already_in_use"):
        super().__init__(message, code)


class ChallengeNotFoundError(ConflictError):
    """Raised when no one-time code is pending (never sent or expired)."""

    def __init__(
        self, message: str = "Code expired or not found", code: str = "challenge_not_found"
    ):
        super().__init__(message, code)


class UserNotFoundError(ConflictError):
    """Raised by lookups that require the account to exist."""

    def __init__(self, message: str = "User not found", code: str = "user_not_found"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Collaborator failures (typically map to 503 Service Unavailable)
# ---------------------------------------------------------------------------


class ServiceUnavailableError(CredoError):
    """Raised when a collaborator (database, cache, mailer) fails or times out."""

    def __init__(
        self, message: str = "Service temporarily unavailable", code: str = "service_unavailable"
    ):
        super().__init__(message, code)


class DatabaseError(ServiceUnavailableError):
    """Raised for errors during database operations."""

    def __init__(self, message: str = "Database operation failed", code: str = "database_error"):
        super().__init__(message, code)


class CacheError(ServiceUnavailableError):
    """Raised when the key-value cache cannot be reached or rejects a command."""

    def __init__(self, message: str = "Cache operation failed", code: str = "cache_error"):
        super().__init__(message, code)


class EmailServiceError(ServiceUnavailableError):
    """Raised when an e-mail cannot be rendered or delivered."""

    def __init__(self, message: str = "Email delivery failed", code: str = "email_service_error"):
        super().__init__(message, code)
