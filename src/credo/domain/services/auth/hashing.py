"""One-way hashing for account passwords and bearer secrets.

Passwords and secrets are hashed with bcrypt through passlib. Two contexts are
kept:

* ``password`` hashes account passwords at BCRYPT_WORK_FACTOR rounds.
* ``secret`` hashes refresh tokens and reset secrets with ``bcrypt_sha256``.
  The SHA-256 pre-hash makes every byte of a long JWT significant; plain
  bcrypt only reads the first 72 bytes, and two refresh tokens of one user
  share a longer prefix than that.

bcrypt is CPU bound, so the async methods run it on a bounded thread pool to
keep the event loop responsive.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import structlog
from passlib.context import CryptContext

logger = structlog.get_logger(__name__)


class PasswordHasher:
    """Hashes and verifies passwords and secrets off the event loop.

    Attributes:
        password_context (CryptContext): bcrypt context for account passwords.
        secret_context (CryptContext): bcrypt_sha256 context for token secrets.
    """

    def __init__(
        self,
        password_rounds: int = 12,
        secret_rounds: int = 10,
        max_workers: int = 4,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.password_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=password_rounds
        )
        self.secret_context = CryptContext(
            schemes=["bcrypt_sha256"], deprecated="auto", bcrypt_sha256__rounds=secret_rounds
        )
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="credo-hash"
        )
        # Verified against when an account does not exist, so that a login
        # for an unknown email costs one full bcrypt verification too.
        self._dummy_password_hash = self.password_context.hash("credo-timing-equalizer")

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def hash_password(self, password: str) -> str:
        """Hashes an account password.

        Args:
            password: Plain text password.

        Returns:
            str: bcrypt hash, salted per call.
        """
        return await self._run(self.password_context.hash, password)

    async def verify_password(self, password: str, hashed_password: Optional[str]) -> bool:
        """Verifies a password against a stored hash in constant time.

        When ``hashed_password`` is ``None`` (no such account) a dummy hash is
        verified instead and ``False`` is returned.

        Returns:
            bool: True if the password matches the hash.
        """
        if hashed_password is None:
            await self._run(self._safe_verify, self.password_context, password, self._dummy_password_hash)
            return False
        return await self._run(self._safe_verify, self.password_context, password, hashed_password)

    async def hash_secret(self, secret: str) -> str:
        """Hashes a high-entropy bearer secret (refresh token, reset secret)."""
        return await self._run(self.secret_context.hash, secret)

    async def verify_secret(self, secret: str, hashed_secret: str) -> bool:
        """Verifies a bearer secret against its stored hash."""
        return await self._run(self._safe_verify, self.secret_context, secret, hashed_secret)

    @staticmethod
    def _safe_verify(context: CryptContext, plain: str, hashed: str) -> bool:
        # A malformed stored hash never authenticates.
        try:
            return context.verify(plain, hashed)
        except (ValueError, TypeError):
            logger.warning("Stored hash could not be parsed")
            return False

    def shutdown(self) -> None:
        """Releases the hashing thread pool."""
        self._executor.shutdown(wait=False)
