"""User Repository implementation using SQLAlchemy.

This module implements :class:`IUserRepository` with SQLAlchemy async
sessions. Each operation opens its own session from the injected factory and
commits or rolls back before returning, so no session outlives a call.

The password change touches three tables (users, password_resets,
refresh_tokens) inside one transaction: either the new hash, the redeemed
reset link and the revoked sessions are all visible, or none of them is.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from credo.core.exceptions import DatabaseError, EmailAlreadyInUseError
from credo.domain.entities.password_reset import PasswordResetRecord
from credo.domain.entities.refresh_token import RefreshTokenRecord, RevocationReason
from credo.domain.entities.user import User
from credo.domain.interfaces.repositories import IUserRepository

logger = get_logger(__name__)


class UserRepository(IUserRepository):
    """SQLAlchemy implementation of IUserRepository.

    Responsibilities:
    - User entity persistence and lookups (case-insensitive by email)
    - Translation of unique-constraint violations into EmailAlreadyInUseError
    - The atomic password change + session revocation transaction
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory producing SQLAlchemy async sessions.
        """
        self._session_factory = session_factory

    async def get_by_id(self, user_id: str) -> Optional[User]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).where(User.id == user_id))
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Error retrieving user by ID", user_id=user_id, error_type=type(e).__name__)
            raise DatabaseError("Failed to load user") from e

    async def get_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(User).where(func.lower(User.email) == normalized)
                )
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Error retrieving user by email", email=normalized, error_type=type(e).__name__)
            raise DatabaseError("Failed to load user") from e

    async def create(self, user: User) -> User:
        async with self._session_factory() as session:
            try:
                session.add(user)
                await session.commit()
                await session.refresh(user)
            except IntegrityError as e:
                await session.rollback()
                logger.info("Duplicate email rejected by database", email=user.email)
                raise EmailAlreadyInUseError() from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Error creating user", error_type=type(e).__name__)
                raise DatabaseError("Failed to create user") from e

        logger.info("User created", user_id=user.id)
        return user

    async def update_password(
        self,
        user_id: str,
        password_hash: str,
        now: datetime,
        reset_record_id: Optional[str] = None,
    ) -> bool:
        async with self._session_factory() as session:
            try:
                if reset_record_id is not None:
                    marked = await session.execute(
                        update(PasswordResetRecord)
                        .where(
                            PasswordResetRecord.id == reset_record_id,
                            PasswordResetRecord.user_id == user_id,
                            PasswordResetRecord.used_at.is_(None),
                        )
                        .values(used_at=now)
                    )
                    if marked.rowcount != 1:
                        await session.rollback()
                        logger.info("Reset record already used", user_id=user_id)
                        return False

                updated = await session.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(password_hash=password_hash, updated_at=now)
                )
                if updated.rowcount != 1:
                    await session.rollback()
                    return False

                revoked = await session.execute(
                    update(RefreshTokenRecord)
                    .where(
                        RefreshTokenRecord.user_id == user_id,
                        RefreshTokenRecord.revoked_at.is_(None),
                    )
                    .values(revoked_at=now, revoked_reason=RevocationReason.PASSWORD_RESET.value)
                )
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Password update transaction failed", user_id=user_id, error_type=type(e).__name__)
                raise DatabaseError("Failed to update password") from e

        logger.info(
            "Password updated and sessions revoked",
            user_id=user_id,
            sessions_revoked=revoked.rowcount,
            via_reset_link=reset_record_id is not None,
        )
        return True
