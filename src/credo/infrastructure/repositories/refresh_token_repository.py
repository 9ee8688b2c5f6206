"""Refresh-token record repository implementation using SQLAlchemy.

Revocation is expressed as conditional UPDATE statements
(``... WHERE revoked_at IS NULL``), so the database serializes concurrent
revocations of one record and exactly one caller sees an affected row.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from credo.core.exceptions import DatabaseError
from credo.domain.entities.refresh_token import RefreshTokenRecord, RevocationReason
from credo.domain.interfaces.repositories import IRefreshTokenRepository

logger = get_logger(__name__)


class RefreshTokenRepository(IRefreshTokenRepository):
    """SQLAlchemy implementation of IRefreshTokenRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        async with self._session_factory() as session:
            try:
                session.add(record)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Failed to store refresh token", user_id=record.user_id, error_type=type(e).__name__)
                raise DatabaseError("Failed to store refresh token") from e
        return record

    async def get_by_id(self, record_id: str) -> Optional[RefreshTokenRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(RefreshTokenRecord).where(RefreshTokenRecord.id == record_id)
                )
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Failed to load refresh token", jti=record_id, error_type=type(e).__name__)
            raise DatabaseError("Failed to load refresh token") from e

    async def list_active_for_user(
        self, user_id: str, now: datetime, limit: int
    ) -> List[RefreshTokenRecord]:
        statement = (
            select(RefreshTokenRecord)
            .where(
                RefreshTokenRecord.user_id == user_id,
                RefreshTokenRecord.revoked_at.is_(None),
                RefreshTokenRecord.expires_at > now,
            )
            .order_by(RefreshTokenRecord.created_at.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Failed to list active refresh tokens", user_id=user_id, error_type=type(e).__name__)
            raise DatabaseError("Failed to load refresh tokens") from e

    async def _update(self, statement, operation: str) -> int:
        async with self._session_factory() as session:
            try:
                result = await session.execute(statement)
                await session.commit()
                return result.rowcount
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Refresh token update failed", operation=operation, error_type=type(e).__name__)
                raise DatabaseError("Failed to update refresh tokens") from e

    async def revoke(self, record_id: str, reason: RevocationReason, now: datetime) -> bool:
        statement = (
            update(RefreshTokenRecord)
            .where(RefreshTokenRecord.id == record_id, RefreshTokenRecord.revoked_at.is_(None))
            .values(revoked_at=now, revoked_reason=RevocationReason(reason).value)
        )
        return await self._update(statement, "revoke") == 1

    async def revoke_all_for_user(
        self, user_id: str, reason: RevocationReason, now: datetime
    ) -> int:
        statement = (
            update(RefreshTokenRecord)
            .where(RefreshTokenRecord.user_id == user_id, RefreshTokenRecord.revoked_at.is_(None))
            .values(revoked_at=now, revoked_reason=RevocationReason(reason).value)
        )
        return await self._update(statement, "revoke_all")

    async def purge_inactive(self, expired_before: datetime, revoked_before: datetime) -> int:
        statement = delete(RefreshTokenRecord).where(
            or_(
                RefreshTokenRecord.expires_at <= expired_before,
                RefreshTokenRecord.revoked_at <= revoked_before,
            )
        )
        return await self._update(statement, "purge")
