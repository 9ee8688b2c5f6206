"""Authentication facade.

:class:`AuthService` is the protocol-agnostic surface of the service. Each
operation applies the rate limit of its class (auth, password_reset or
general), bounds the work by a deadline, and delegates to the domain
services:

=======================  =====================================================
register_start           e-mail a registration code
register_verify          check the code, create the account, open a session
login                    check credentials, open a session
refresh                  rotate a refresh token
logout                   revoke every session of the user
request_reset            e-mail a reset code
reset_verify             exchange a reset code for a reset token
reset_confirm            redeem the reset token and set a new password
request_reset_link       e-mail a reset link
confirm_reset_link       redeem a reset link and set a new password
me                       read the user's public profile
=======================  =====================================================

Transport adapters (HTTP, RPC, CLI) translate the :class:`CredoError`
hierarchy into their own status codes.
"""

from dataclasses import dataclass
from typing import Optional

from structlog import get_logger

from credo.core.concurrency import with_deadline
from credo.core.exceptions import RateLimitExceededError, UserNotFoundError
from credo.core.rate_limiting import FixedWindowRateLimiter
from credo.domain.entities.user import UserProfile, UserRead
from credo.domain.services.auth.otp import OtpChallengeService
from credo.domain.services.auth.password_reset import PasswordResetService
from credo.domain.services.auth.session import SessionService
from credo.domain.services.auth.user_credentials import UserCredentialService
from credo.domain.value_objects.email import Email
from credo.domain.value_objects.otp import OtpPurpose
from credo.domain.value_objects.tokens import SessionMeta, TokenPair

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class AuthResult:
    """An authenticated user and the tokens of their new session."""

    user: UserRead
    access_token: str
    refresh_token: str

    def __repr__(self) -> str:
        return f"AuthResult(user_id={self.user.id!r}, access_token=[redacted], refresh_token=[redacted])"


class AuthService:
    """Entry point for registration, login, token refresh, logout and resets.

    Attributes:
        credentials (UserCredentialService): Account creation and login checks.
        sessions (SessionService): Token issuance, rotation and revocation.
        otp (OtpChallengeService): E-mailed one-time codes.
        password_reset (PasswordResetService): Reset links and the final reset step.
        rate_limiter (FixedWindowRateLimiter): Per-client request budgets.
        default_timeout (Optional[float]): Deadline in seconds applied when a
            call passes none; None disables it.
    """

    def __init__(
        self,
        credentials: UserCredentialService,
        sessions: SessionService,
        otp: OtpChallengeService,
        password_reset: PasswordResetService,
        rate_limiter: FixedWindowRateLimiter,
        default_timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.sessions = sessions
        self.otp = otp
        self.password_reset = password_reset
        self.rate_limiter = rate_limiter
        self.default_timeout = default_timeout

    def _enforce_rate_limit(
        self, operation: str, meta: Optional[SessionMeta], subject: Optional[str] = None
    ) -> None:
        client = (meta.ip if meta and meta.ip else None) or UNKNOWN_CLIENT
        identifier = "|".join(part for part in (client, operation, subject) if part)
        rule = self.rate_limiter.rule_for_endpoint(operation)
        if not self.rate_limiter.check(identifier, rule):
            raise RateLimitExceededError(
                retry_after=self.rate_limiter.retry_after_seconds(identifier, rule)
            )

    async def _run(self, operation: str, awaitable, timeout: Optional[float]):
        return await with_deadline(
            awaitable, timeout if timeout is not None else self.default_timeout, operation
        )

    @staticmethod
    def _loose_email(email: str) -> str:
        return email.strip().lower() if isinstance(email, str) else ""

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_start(
        self, email: str, meta: Optional[SessionMeta] = None, timeout: Optional[float] = None
    ) -> None:
        """Sends a registration code to ``email``.

        A repeated call within the resend cooldown returns normally without
        sending a new code.

        Raises:
            ValidationError: If the email is malformed.
            RateLimitExceededError: If the client exceeded the auth budget.
            EmailServiceError: If the code could not be delivered.
        """
        normalized = Email(email).value
        self._enforce_rate_limit("register_start", meta, normalized)
        await self._run("register_start", self.otp.send(normalized, OtpPurpose.REGISTER), timeout)

    async def register_verify(
        self,
        email: str,
        code: str,
        password: str,
        profile: Optional[UserProfile] = None,
        meta: Optional[SessionMeta] = None,
        timeout: Optional[float] = None,
    ) -> AuthResult:
        """Completes a registration and opens the first session.

        Raises:
            ValidationError: If the email is malformed.
            RateLimitExceededError: If the client exceeded the general budget.
            TooManyAttemptsError, ChallengeNotFoundError, InvalidCodeError:
                If the code is not accepted.
            PasswordPolicyError: If the password is too weak.
            EmailAlreadyInUseError: If the email is already registered.
        """
        normalized = Email(email).value
        self._enforce_rate_limit("register_verify", meta, normalized)
        return await self._run(
            "register_verify", self._register(normalized, code, password, profile, meta), timeout
        )

    async def _register(
        self,
        email: str,
        code: str,
        password: str,
        profile: Optional[UserProfile],
        meta: Optional[SessionMeta],
    ) -> AuthResult:
        self.credentials.password_policy.validate(password)
        await self.otp.verify(email, OtpPurpose.REGISTER, code)
        user = await self.credentials.create_user(email, password, profile)
        pair = await self.sessions.create_session(user.id, user.email, meta)
        return AuthResult(user=user, access_token=pair.access_token, refresh_token=pair.refresh_token)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def login(
        self,
        email: str,
        password: str,
        meta: Optional[SessionMeta] = None,
        timeout: Optional[float] = None,
    ) -> AuthResult:
        """Authenticates with email and password.

        Raises:
            RateLimitExceededError: If the client exceeded the auth budget.
            InvalidCredentialsError: If the email is unknown or the password
                is wrong.
        """
        normalized = self._loose_email(email)
        self._enforce_rate_limit("login", meta, normalized)
        return await self._run("login", self._login(normalized, password, meta), timeout)

    async def _login(self, email: str, password: str, meta: Optional[SessionMeta]) -> AuthResult:
        user = await self.credentials.validate_credentials(email, password)
        pair = await self.sessions.create_session(user.id, user.email, meta)
        await logger.ainfo("User logged in", user_id=user.id, client=meta.ip if meta else None)
        return AuthResult(user=user, access_token=pair.access_token, refresh_token=pair.refresh_token)

    async def refresh(
        self,
        refresh_token: str,
        meta: Optional[SessionMeta] = None,
        timeout: Optional[float] = None,
    ) -> TokenPair:
        """Rotates a refresh token.

        Raises:
            RateLimitExceededError: If the client exceeded the auth budget.
            InvalidRefreshTokenError: If the token cannot be exchanged.
        """
        self._enforce_rate_limit("refresh", meta)
        return await self._run("refresh", self.sessions.refresh_session(refresh_token, meta), timeout)

    async def logout(
        self, user_id: str, meta: Optional[SessionMeta] = None, timeout: Optional[float] = None
    ) -> int:
        """Revokes every active session of the user. Returns how many."""
        self._enforce_rate_limit("logout", meta)
        return await self._run("logout", self.sessions.terminate_session(user_id), timeout)

    async def me(
        self, user_id: str, meta: Optional[SessionMeta] = None, timeout: Optional[float] = None
    ) -> UserRead:
        """Returns the public profile of ``user_id``.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        self._enforce_rate_limit("me", meta)
        user = await self._run("me", self.credentials.find_by_id(user_id), timeout)
        if user is None:
            raise UserNotFoundError()
        return user

    # ------------------------------------------------------------------
    # Password reset with e-mailed codes
    # ------------------------------------------------------------------

    async def request_reset(
        self, email: str, meta: Optional[SessionMeta] = None, timeout: Optional[float] = None
    ) -> None:
        """Sends a reset code.

        The code is sent whether or not the email has an account, so the
        response never reveals which addresses are registered.
        """
        normalized = Email(email).value
        self._enforce_rate_limit("request_reset", meta, normalized)
        await self._run("request_reset", self.otp.send(normalized, OtpPurpose.RESET), timeout)

    async def reset_verify(
        self,
        email: str,
        code: str,
        meta: Optional[SessionMeta] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Exchanges a reset code for a short-lived single-use reset token.

        Raises:
            TooManyAttemptsError, ChallengeNotFoundError, InvalidCodeError:
                If the code is not accepted.
        """
        normalized = Email(email).value
        self._enforce_rate_limit("reset_verify", meta, normalized)
        return await self._run("reset_verify", self.otp.verify_reset(normalized, code), timeout)

    async def reset_confirm(
        self,
        reset_token: str,
        new_password: str,
        meta: Optional[SessionMeta] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Sets a new password using a reset token from :meth:`reset_verify`.

        The password is checked before the token is consumed, so a weak
        password does not burn the token.

        Raises:
            PasswordPolicyError: If the new password is too weak.
            InvalidOrExpiredTokenError: If the token is unknown, expired or used.
        """
        self._enforce_rate_limit("reset_confirm", meta)
        await self._run("reset_confirm", self._reset_confirm(reset_token, new_password), timeout)

    async def _reset_confirm(self, reset_token: str, new_password: str) -> None:
        self.credentials.password_policy.validate(new_password)
        email = await self.otp.consume_reset_token(reset_token)
        await self.password_reset.reset_with_known_email(email, new_password)

    # ------------------------------------------------------------------
    # Password reset with e-mailed links
    # ------------------------------------------------------------------

    async def request_reset_link(
        self, email: str, meta: Optional[SessionMeta] = None, timeout: Optional[float] = None
    ) -> None:
        """E-mails a reset link if the account exists; always returns normally."""
        normalized = self._loose_email(email)
        self._enforce_rate_limit("request_reset_link", meta, normalized)
        await self._run("request_reset_link", self.password_reset.request_reset(normalized), timeout)

    async def confirm_reset_link(
        self,
        token: str,
        new_password: str,
        meta: Optional[SessionMeta] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Redeems a reset link token and sets the new password.

        Raises:
            PasswordPolicyError: If the new password is too weak.
            InvalidOrExpiredTokenError: If the link is not redeemable.
        """
        self._enforce_rate_limit("confirm_reset_link", meta)
        await self._run(
            "confirm_reset_link", self.password_reset.reset_confirm(token, new_password), timeout
        )
