"""Password reset flows.

Two flows share the final step, an atomic password change that also revokes
every session of the user:

* **Link flow**: :meth:`PasswordResetService.request_reset` e-mails a link
  whose token is ``<record id>.<secret>``. The record id keys a single-row
  lookup, so confirming never scans other users' records, and only a hash of
  the secret is stored.
* **Code flow**: after an OTP reset challenge has been verified and its
  exchange token consumed, :meth:`PasswordResetService.reset_with_known_email`
  changes the password of the account behind that email, if any.

Requests always look the same to the caller whether or not the email has an
account, to prevent enumeration.
"""

import urllib.parse
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from structlog import get_logger

from credo.core.exceptions import EmailServiceError, InvalidOrExpiredTokenError
from credo.domain.entities.password_reset import PasswordResetRecord
from credo.domain.interfaces.notifier import INotifier
from credo.domain.interfaces.repositories import IPasswordResetRepository
from credo.domain.services.auth.hashing import PasswordHasher
from credo.domain.services.auth.token import TokenService
from credo.domain.services.auth.user_credentials import UserCredentialService

logger = get_logger(__name__)

TOKEN_SEPARATOR = "."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PasswordResetService:
    """Issues and redeems password reset links and finishes code-based resets.

    Attributes:
        reset_repository (IPasswordResetRepository): Reset link persistence.
        credentials (UserCredentialService): Account lookup and password change.
        token_service (TokenService): Secret generation and link lifetime.
        hasher (PasswordHasher): Hashes link secrets.
        notifier (INotifier): Delivers links.
        reset_url_base (str): Front-end URL the token is appended to.
    """

    def __init__(
        self,
        reset_repository: IPasswordResetRepository,
        credentials: UserCredentialService,
        token_service: TokenService,
        hasher: PasswordHasher,
        notifier: INotifier,
        reset_url_base: str,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.reset_repository = reset_repository
        self.credentials = credentials
        self.token_service = token_service
        self.hasher = hasher
        self.notifier = notifier
        self.reset_url_base = reset_url_base
        self._clock = clock

    def _build_reset_url(self, token: str) -> str:
        separator = "&" if "?" in self.reset_url_base else "?"
        return f"{self.reset_url_base}{separator}{urllib.parse.urlencode({'token': token})}"

    async def request_reset(self, email: str) -> None:
        """Sends a reset link if the account exists; returns normally either way.

        Earlier unused links of the user are invalidated first, so only the
        newest link works. A delivery failure is logged, the new link is
        invalidated, and the call still returns normally.
        """
        user = await self.credentials.find_entity_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email", email=email)
            return

        now = self._clock()
        await self.reset_repository.invalidate_for_user(user.id, now)

        secret = self.token_service.generate_opaque_secret(32)
        record = PasswordResetRecord(
            id=uuid.uuid4().hex,
            user_id=user.id,
            token_hash=await self.hasher.hash_secret(secret),
            created_at=now,
            expires_at=self.token_service.reset_expiry_instant(),
        )
        await self.reset_repository.add(record)

        token = f"{record.id}{TOKEN_SEPARATOR}{secret}"
        try:
            await self.notifier.send_password_reset_link(user.email, self._build_reset_url(token))
        except EmailServiceError:
            await self.reset_repository.invalidate_for_user(user.id, self._clock())
            logger.error("Password reset link could not be delivered", user_id=user.id)
            return

        await logger.ainfo("Password reset link sent", user_id=user.id, token_prefix=record.id[:8])

    async def reset_confirm(self, token: str, new_password: str) -> None:
        """Redeems a reset link and sets the new password.

        In one transaction the password hash is updated, the link is marked
        used and every refresh token of the user is revoked.

        Raises:
            PasswordPolicyError: If the new password is too weak.
            InvalidOrExpiredTokenError: If the link is malformed, unknown,
                used, expired, or its secret does not verify.
        """
        self.credentials.password_policy.validate(new_password)

        record_id, _, secret = (token or "").partition(TOKEN_SEPARATOR)
        if not record_id or not secret:
            raise InvalidOrExpiredTokenError()

        record = await self.reset_repository.get_by_id(record_id)
        if record is None or not record.is_redeemable(self._clock()):
            logger.info("Reset link rejected: unknown, used or expired", token_prefix=record_id[:8])
            raise InvalidOrExpiredTokenError()

        if not await self.hasher.verify_secret(secret, record.token_hash):
            logger.warning("Reset link rejected: secret mismatch", token_prefix=record_id[:8])
            raise InvalidOrExpiredTokenError()

        if not await self.credentials.update_password(
            record.user_id, new_password, reset_record_id=record.id
        ):
            raise InvalidOrExpiredTokenError()

        await logger.ainfo("Password reset via link completed", user_id=record.user_id)

    async def reset_with_known_email(self, email: str, new_password: str) -> None:
        """Final step of the code flow: change the password of ``email``'s account.

        Silently does nothing when the email has no account.

        Raises:
            PasswordPolicyError: If the new password is too weak.
        """
        user = await self.credentials.find_entity_by_email(email)
        if user is None:
            logger.info("Password reset for unknown email ignored", email=email)
            return
        await self.credentials.update_password(user.id, new_password)
        await logger.ainfo("Password reset via code completed", user_id=user.id)

    async def purge_expired(self) -> int:
        """Deletes reset links that expired or were used. Returns the count."""
        return await self.reset_repository.purge(self._clock())
