"""In-memory repository implementations.

All three repositories share one :class:`InMemoryStore`, guarded by a single
re-entrant lock, so the password change can touch users, reset records and
refresh tokens in one critical section the way the SQL adapter does in one
transaction. Intended for tests and single-process deployments.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

from credo.core.exceptions import EmailAlreadyInUseError
from credo.domain.entities.password_reset import PasswordResetRecord
from credo.domain.entities.refresh_token import RefreshTokenRecord, RevocationReason, as_utc
from credo.domain.entities.user import User
from credo.domain.interfaces.repositories import (
    IPasswordResetRepository,
    IRefreshTokenRepository,
    IUserRepository,
)


class InMemoryStore:
    """Tables held in dictionaries keyed by primary key."""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.refresh_tokens: Dict[str, RefreshTokenRecord] = {}
        self.password_resets: Dict[str, PasswordResetRecord] = {}
        self.lock = threading.RLock()


class InMemoryUserRepository(IUserRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get_by_id(self, user_id: str) -> Optional[User]:
        with self._store.lock:
            return self._store.users.get(user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        with self._store.lock:
            return next(
                (u for u in self._store.users.values() if u.email.lower() == normalized), None
            )

    async def create(self, user: User) -> User:
        user.email = user.email.strip().lower()
        with self._store.lock:
            if any(u.email == user.email for u in self._store.users.values()):
                raise EmailAlreadyInUseError()
            self._store.users[user.id] = user
        return user

    async def update_password(
        self,
        user_id: str,
        password_hash: str,
        now: datetime,
        reset_record_id: Optional[str] = None,
    ) -> bool:
        with self._store.lock:
            user = self._store.users.get(user_id)
            if user is None:
                return False
            if reset_record_id is not None:
                record = self._store.password_resets.get(reset_record_id)
                if record is None or record.user_id != user_id or record.used_at is not None:
                    return False
                record.used_at = now
            user.password_hash = password_hash
            user.updated_at = now
            for token in self._store.refresh_tokens.values():
                if token.user_id == user_id and token.revoked_at is None:
                    token.revoked_at = now
                    token.revoked_reason = RevocationReason.PASSWORD_RESET.value
        return True


class InMemoryRefreshTokenRepository(IRefreshTokenRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        with self._store.lock:
            self._store.refresh_tokens[record.id] = record
        return record

    async def get_by_id(self, record_id: str) -> Optional[RefreshTokenRecord]:
        with self._store.lock:
            return self._store.refresh_tokens.get(record_id)

    async def list_active_for_user(
        self, user_id: str, now: datetime, limit: int
    ) -> List[RefreshTokenRecord]:
        with self._store.lock:
            active = [
                r
                for r in self._store.refresh_tokens.values()
                if r.user_id == user_id and r.revoked_at is None and as_utc(r.expires_at) > now
            ]
        active.sort(key=lambda r: as_utc(r.created_at), reverse=True)
        return active[:limit]

    async def revoke(self, record_id: str, reason: RevocationReason, now: datetime) -> bool:
        with self._store.lock:
            record = self._store.refresh_tokens.get(record_id)
            if record is None or record.revoked_at is not None:
                return False
            record.revoked_at = now
            record.revoked_reason = RevocationReason(reason).value
            return True

    async def revoke_all_for_user(
        self, user_id: str, reason: RevocationReason, now: datetime
    ) -> int:
        revoked = 0
        with self._store.lock:
            for record in self._store.refresh_tokens.values():
                if record.user_id == user_id and record.revoked_at is None:
                    record.revoked_at = now
                    record.revoked_reason = RevocationReason(reason).value
                    revoked += 1
        return revoked

    async def purge_inactive(self, expired_before: datetime, revoked_before: datetime) -> int:
        with self._store.lock:
            stale = [
                record_id
                for record_id, r in self._store.refresh_tokens.items()
                if as_utc(r.expires_at) <= expired_before
                or (r.revoked_at is not None and as_utc(r.revoked_at) <= revoked_before)
            ]
            for record_id in stale:
                del self._store.refresh_tokens[record_id]
        return len(stale)


class InMemoryPasswordResetRepository(IPasswordResetRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, record: PasswordResetRecord) -> PasswordResetRecord:
        with self._store.lock:
            self._store.password_resets[record.id] = record
        return record

    async def get_by_id(self, record_id: str) -> Optional[PasswordResetRecord]:
        with self._store.lock:
            return self._store.password_resets.get(record_id)

    async def invalidate_for_user(self, user_id: str, now: datetime) -> int:
        invalidated = 0
        with self._store.lock:
            for record in self._store.password_resets.values():
                if record.user_id == user_id and record.used_at is None:
                    record.used_at = now
                    invalidated += 1
        return invalidated

    async def purge(self, before: datetime) -> int:
        with self._store.lock:
            stale = [
                record_id
                for record_id, r in self._store.password_resets.items()
                if as_utc(r.expires_at) <= before
                or (r.used_at is not None and as_utc(r.used_at) <= before)
            ]
            for record_id in stale:
                del self._store.password_resets[record_id]
        return len(stale)
