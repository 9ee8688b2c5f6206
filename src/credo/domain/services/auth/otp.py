"""One-time code challenges for registration and password reset.

A challenge is cache state keyed by purpose and email:

* ``otp:<purpose>:<email>``          the pending code (TTL: code lifetime)
* ``otp:<purpose>:attempts:<email>`` verify attempts so far (TTL: code lifetime)
* ``otp:<purpose>:lock:<email>``     resend lock (TTL: resend cooldown)
* ``reset:token:<token>``            reset exchange token -> email (TTL: ``auth`` category)

Per (email, purpose) the challenge moves from ``none`` to ``pending`` on
send, then to ``verified`` (code and counter deleted) or ``locked``
(attempts exhausted), or back to ``none`` when the TTL passes.

For resets, proving receipt of the code and choosing the new password are two
steps: a verified code is exchanged for a short-lived single-use token, and
only that token authorizes the password change.
"""

import hmac
import secrets
from typing import Callable, Optional

from structlog import get_logger

from credo.core.exceptions import (
    ChallengeNotFoundError,
    InvalidCodeError,
    InvalidOrExpiredTokenError,
    TooManyAttemptsError,
)
from credo.domain.interfaces.cache import CacheCategory, ICacheService
from credo.domain.interfaces.notifier import INotifier
from credo.domain.value_objects.otp import OtpPurpose, generate_numeric_code

logger = get_logger(__name__)


class OtpChallengeService:
    """Issues, verifies and exchanges e-mailed one-time codes.

    Attributes:
        cache (ICacheService): Holds codes, counters, locks and exchange tokens.
        notifier (INotifier): Delivers codes.
        code_ttl_seconds (int): Lifetime of a sent code and its attempt window.
        resend_cooldown_seconds (int): Minimum gap between two sends.
        max_attempts (int): Verify calls allowed per sent code.
    """

    def __init__(
        self,
        cache: ICacheService,
        notifier: INotifier,
        code_ttl_seconds: int = 600,
        resend_cooldown_seconds: int = 60,
        max_attempts: int = 5,
        code_length: int = 6,
        code_generator: Optional[Callable[[], str]] = None,
    ):
        self.cache = cache
        self.notifier = notifier
        self.code_ttl_seconds = code_ttl_seconds
        self.resend_cooldown_seconds = resend_cooldown_seconds
        self.max_attempts = max_attempts
        self._generate_code = code_generator or (lambda: generate_numeric_code(code_length))

    @classmethod
    def from_settings(
        cls,
        settings,
        cache: ICacheService,
        notifier: INotifier,
        code_generator: Optional[Callable[[], str]] = None,
    ) -> "OtpChallengeService":
        return cls(
            cache,
            notifier,
            code_generator=code_generator,
            code_ttl_seconds=settings.OTP_CODE_TTL_SECONDS,
            resend_cooldown_seconds=settings.OTP_RESEND_COOLDOWN_SECONDS,
            max_attempts=settings.OTP_MAX_ATTEMPTS,
            code_length=settings.OTP_CODE_LENGTH,
        )

    @staticmethod
    def _code_key(purpose: OtpPurpose, email: str) -> str:
        return f"otp:{purpose.value}:{email}"

    @staticmethod
    def _attempts_key(purpose: OtpPurpose, email: str) -> str:
        return f"otp:{purpose.value}:attempts:{email}"

    @staticmethod
    def _lock_key(purpose: OtpPurpose, email: str) -> str:
        return f"otp:{purpose.value}:lock:{email}"

    @staticmethod
    def _reset_token_key(token: str) -> str:
        return f"reset:token:{token}"

    async def send(self, email: str, purpose: OtpPurpose) -> bool:
        """Sends a fresh code unless a resend lock is active.

        While the lock is held the call is a silent no-op: nothing is sent and
        the attempt counter is untouched, and the caller cannot tell the two
        outcomes apart. Otherwise the lock is taken atomically, a new code
        replaces any pending one, the attempt counter restarts, and the code
        is dispatched. If dispatch fails the code and lock are removed so the
        user can retry immediately, and the error propagates.

        Args:
            email: Normalized recipient address.
            purpose: Registration or reset.

        Returns:
            bool: True if a code was dispatched; False if the lock suppressed it.

        Raises:
            EmailServiceError: If the notifier fails.
            CacheError: If the cache is unavailable.
        """
        purpose = OtpPurpose(purpose)
        lock_key = self._lock_key(purpose, email)
        if not await self.cache.set_if_absent(lock_key, "1", self.resend_cooldown_seconds):
            logger.info("OTP send suppressed by resend lock", email=email, purpose=purpose.value)
            return False

        code = self._generate_code()
        code_key = self._code_key(purpose, email)
        await self.cache.set(code_key, code, ttl_seconds=self.code_ttl_seconds)
        await self.cache.delete(self._attempts_key(purpose, email))

        try:
            await self.notifier.send_otp_code(email, code, purpose)
        except Exception:
            await self.cache.delete(code_key, lock_key)
            logger.error("OTP dispatch failed; challenge rolled back", email=email, purpose=purpose.value)
            raise

        logger.info("OTP sent", email=email, purpose=purpose.value)
        return True

    async def verify(self, email: str, purpose: OtpPurpose, code: str) -> None:
        """Checks a code against the pending challenge.

        The attempt counter is incremented before anything else, so even a
        correct code is refused once the attempts are used up.

        Raises:
            TooManyAttemptsError: If this call exceeds the attempt budget.
            ChallengeNotFoundError: If no code is pending.
            InvalidCodeError: If the code does not match.
        """
        purpose = OtpPurpose(purpose)
        attempts_key = self._attempts_key(purpose, email)
        attempts = await self.cache.incr(attempts_key, self.code_ttl_seconds)
        if attempts > self.max_attempts:
            logger.warning("OTP attempts exhausted", email=email, purpose=purpose.value, attempts=attempts)
            raise TooManyAttemptsError()

        code_key = self._code_key(purpose, email)
        stored = await self.cache.get(code_key)
        if stored is None:
            raise ChallengeNotFoundError()

        if not isinstance(code, str) or not hmac.compare_digest(stored.encode(), code.encode()):
            logger.info("OTP mismatch", email=email, purpose=purpose.value, attempts=attempts)
            raise InvalidCodeError()

        await self.cache.delete(code_key, attempts_key)
        logger.info("OTP verified", email=email, purpose=purpose.value)

    async def verify_reset(self, email: str, code: str) -> str:
        """Verifies a reset code and issues a single-use reset exchange token.

        Returns:
            str: 16 random bytes, hex-encoded, mapped to the email.

        Raises:
            TooManyAttemptsError, ChallengeNotFoundError, InvalidCodeError:
                As for :meth:`verify`.
        """
        await self.verify(email, OtpPurpose.RESET, code)
        token = secrets.token_hex(16)
        await self.cache.set(self._reset_token_key(token), email, category=CacheCategory.AUTH)
        logger.info("Reset exchange token issued", email=email, token_prefix=token[:6])
        return token

    async def consume_reset_token(self, token: str) -> str:
        """Redeems a reset exchange token exactly once.

        Returns:
            str: The email the token was issued for.

        Raises:
            InvalidOrExpiredTokenError: If the token is unknown, expired or
                already consumed.
        """
        if not isinstance(token, str) or not token:
            raise InvalidOrExpiredTokenError()
        email = await self.cache.pop(self._reset_token_key(token))
        if email is None:
            raise InvalidOrExpiredTokenError()
        return email
