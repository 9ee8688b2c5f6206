"""Password reset record repository implementation using SQLAlchemy."""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from credo.core.exceptions import DatabaseError
from credo.domain.entities.password_reset import PasswordResetRecord
from credo.domain.interfaces.repositories import IPasswordResetRepository

logger = get_logger(__name__)


class PasswordResetRepository(IPasswordResetRepository):
    """SQLAlchemy implementation of IPasswordResetRepository.

    Redeeming a record happens in :meth:`UserRepository.update_password`,
    inside the password change transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add(self, record: PasswordResetRecord) -> PasswordResetRecord:
        async with self._session_factory() as session:
            try:
                session.add(record)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Failed to store reset record", user_id=record.user_id, error_type=type(e).__name__)
                raise DatabaseError("Failed to store password reset") from e
        return record

    async def get_by_id(self, record_id: str) -> Optional[PasswordResetRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(PasswordResetRecord).where(PasswordResetRecord.id == record_id)
                )
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Failed to load reset record", error_type=type(e).__name__)
            raise DatabaseError("Failed to load password reset") from e

    async def _write(self, statement, operation: str) -> int:
        async with self._session_factory() as session:
            try:
                result = await session.execute(statement)
                await session.commit()
                return result.rowcount
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Reset record update failed", operation=operation, error_type=type(e).__name__)
                raise DatabaseError("Failed to update password resets") from e

    async def invalidate_for_user(self, user_id: str, now: datetime) -> int:
        statement = (
            update(PasswordResetRecord)
            .where(PasswordResetRecord.user_id == user_id, PasswordResetRecord.used_at.is_(None))
            .values(used_at=now)
        )
        return await self._write(statement, "invalidate_for_user")

    async def purge(self, before: datetime) -> int:
        statement = delete(PasswordResetRecord).where(
            or_(PasswordResetRecord.expires_at <= before, PasswordResetRecord.used_at <= before)
        )
        return await self._write(statement, "purge")
