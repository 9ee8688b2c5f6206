"""Persistence of hashed refresh tokens.

Only a salted one-way hash of each refresh token is stored, so a presented
token cannot be looked up by value. A refresh token names its record through
its ``jti`` claim, so matching loads that one record and verifies the hash.
Without a ``jti`` the bounded set of the owner's active records is loaded,
newest first, and the token is verified against each hash until one matches.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from structlog import get_logger

from credo.domain.entities.refresh_token import RefreshTokenRecord, RevocationReason
from credo.domain.interfaces.repositories import IRefreshTokenRepository
from credo.domain.services.auth.hashing import PasswordHasher
from credo.domain.value_objects.tokens import SessionMeta

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshTokenStore:
    """Stores, matches and revokes refresh-token records.

    Attributes:
        repository (IRefreshTokenRepository): Record persistence.
        hasher (PasswordHasher): Hashes and verifies raw tokens.
        max_candidates (int): Upper bound on records verified per match.
    """

    def __init__(
        self,
        repository: IRefreshTokenRepository,
        hasher: PasswordHasher,
        max_candidates: int = 50,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.hasher = hasher
        self.max_candidates = max_candidates
        self._clock = clock

    async def save(
        self,
        user_id: str,
        raw_token: str,
        meta: Optional[SessionMeta],
        expires_at: datetime,
        record_id: str,
    ) -> RefreshTokenRecord:
        """Hashes and persists a refresh token as an active record.

        Args:
            user_id: The owning user.
            raw_token: The encoded refresh token.
            meta: Request metadata to record.
            expires_at: Expiry of the token.
            record_id: The token's ``jti``.

        Returns:
            RefreshTokenRecord: The stored record.

        Raises:
            DatabaseError: If the record cannot be stored.
        """
        meta = meta or SessionMeta()
        record = RefreshTokenRecord(
            id=record_id,
            user_id=user_id,
            hashed_token=await self.hasher.hash_secret(raw_token),
            user_agent=meta.user_agent[:512] if meta.user_agent else None,
            ip=meta.ip,
            created_at=self._clock(),
            expires_at=expires_at,
        )
        await self.repository.add(record)
        logger.debug("Refresh token stored", user_id=user_id, jti=record_id)
        return record

    async def find_active_match(
        self, user_id: str, raw_token: str, record_id: Optional[str] = None
    ) -> Optional[RefreshTokenRecord]:
        """Finds the active record of ``user_id`` whose hash matches ``raw_token``.

        With ``record_id`` (the token's ``jti``) only that record is loaded and
        verified, so a token stays usable however many newer sessions the
        user opened. Without it the newest ``max_candidates`` active records
        are tried.

        Returns:
            The matching record, or None if no active record matches.
        """
        if record_id is not None:
            return await self._match_record(user_id, raw_token, record_id)

        candidates = await self.repository.list_active_for_user(
            user_id, self._clock(), self.max_candidates
        )
        for record in candidates:
            if await self.hasher.verify_secret(raw_token, record.hashed_token):
                return record
        logger.debug("No active refresh token matched", user_id=user_id, candidates=len(candidates))
        return None

    async def _match_record(
        self, user_id: str, raw_token: str, record_id: str
    ) -> Optional[RefreshTokenRecord]:
        record = await self.repository.get_by_id(record_id)
        if record is None or record.user_id != user_id or not record.is_active(self._clock()):
            logger.debug("No active refresh token matched", user_id=user_id, jti=record_id)
            return None
        if not await self.hasher.verify_secret(raw_token, record.hashed_token):
            logger.debug("Refresh token hash mismatch", user_id=user_id, jti=record_id)
            return None
        return record

    async def find_revoked_match(
        self, user_id: str, record_id: str, raw_token: str
    ) -> Optional[RefreshTokenRecord]:
        """Returns the revoked record ``record_id`` if it belongs to the user and matches.

        Used to recognize a replayed, already-rotated refresh token.
        """
        record = await self.repository.get_by_id(record_id)
        if record is None or record.user_id != user_id or record.revoked_at is None:
            return None
        if not await self.hasher.verify_secret(raw_token, record.hashed_token):
            return None
        return record

    async def revoke(self, record_id: str, reason: RevocationReason) -> bool:
        """Revokes one record if it is still active.

        Returns:
            bool: True if this call performed the revocation.
        """
        revoked = await self.repository.revoke(record_id, reason, self._clock())
        logger.debug("Refresh token revoke", jti=record_id, reason=reason.value, revoked=revoked)
        return revoked

    async def revoke_all(self, user_id: str, reason: RevocationReason) -> int:
        """Revokes every active record of the user. Returns the count."""
        count = await self.repository.revoke_all_for_user(user_id, reason, self._clock())
        logger.info("Refresh tokens revoked", user_id=user_id, reason=reason.value, count=count)
        return count

    async def purge_inactive(self, retention: timedelta) -> int:
        """Deletes expired records and records revoked longer than ``retention`` ago."""
        now = self._clock()
        purged = await self.repository.purge_inactive(now, now - retention)
        if purged:
            logger.info("Inactive refresh tokens purged", count=purged)
        return purged
