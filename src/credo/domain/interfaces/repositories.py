"""Repository interfaces for abstracting data persistence in the domain layer.

This module defines the abstract base classes (interfaces) for repositories,
which act as a "port" in the context of Hexagonal Architecture. The domain
services use these interfaces to interact with persistence without being
coupled to any specific technology.

The concrete implementations reside in the `infrastructure` layer: a
SQLAlchemy adapter for production and an in-memory adapter for tests and
single-process deployments. Adapters translate driver failures into
:class:`~credo.core.exceptions.DatabaseError`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from credo.domain.entities.password_reset import PasswordResetRecord
from credo.domain.entities.refresh_token import RefreshTokenRecord, RevocationReason
from credo.domain.entities.user import User


class IUserRepository(ABC):
    """An interface defining the contract for user persistence operations.

    This repository manages the lifecycle of the `User` aggregate root,
    including the password change that cascades to the user's refresh
    tokens and reset links.
    """

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Retrieves a user by their unique identifier.

        Args:
            user_id: The user's id.

        Returns:
            An optional `User` entity. Returns `None` if no user is found.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Retrieves a user by their email address (case-insensitively).

        Args:
            email: The email address to search for.

        Returns:
            An optional `User` entity. Returns `None` if no user is found.
        """
        raise NotImplementedError

    @abstractmethod
    async def create(self, user: User) -> User:
        """Persists a new user.

        Args:
            user: The user entity with its password already hashed.

        Returns:
            The stored entity.

        Raises:
            EmailAlreadyInUseError: If the email is already registered,
                including when a concurrent insert wins the race.
        """
        raise NotImplementedError

    @abstractmethod
    async def update_password(
        self,
        user_id: str,
        password_hash: str,
        now: datetime,
        reset_record_id: Optional[str] = None,
    ) -> bool:
        """Changes a password and revokes the user's sessions in one transaction.

        Within a single transaction:
        1. If ``reset_record_id`` is given, marks that reset record used,
           conditional on it still being unused and belonging to the user.
        2. Updates the password hash and ``updated_at``.
        3. Revokes every active refresh token of the user with reason
           ``password_reset``.

        Args:
            user_id: The user whose password changes.
            password_hash: The new bcrypt hash.
            now: The timestamp recorded on every row the transaction touches.
            reset_record_id: The reset link being redeemed, if any.

        Returns:
            bool: False, with nothing changed, if the user does not exist or
            the reset record was already used.
        """
        raise NotImplementedError


class IRefreshTokenRepository(ABC):
    """An interface defining the contract for refresh-token record persistence."""

    @abstractmethod
    async def add(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        """Persists a new refresh-token record."""
        raise NotImplementedError

    @abstractmethod
    async def get_by_id(self, record_id: str) -> Optional[RefreshTokenRecord]:
        """Retrieves a record by id regardless of its state."""
        raise NotImplementedError

    @abstractmethod
    async def list_active_for_user(
        self, user_id: str, now: datetime, limit: int
    ) -> List[RefreshTokenRecord]:
        """Lists a user's active records, newest first.

        Args:
            user_id: The owning user.
            now: Records expiring at or before this instant are excluded.
            limit: Upper bound on the number of records returned.

        Returns:
            At most ``limit`` records with ``revoked_at`` unset and
            ``expires_at`` after ``now``, ordered by ``created_at`` descending.
        """
        raise NotImplementedError

    @abstractmethod
    async def revoke(self, record_id: str, reason: RevocationReason, now: datetime) -> bool:
        """Revokes one record if, and only if, it is not revoked yet.

        Returns:
            bool: True if this call performed the revocation. Of several
            concurrent callers exactly one observes True.
        """
        raise NotImplementedError

    @abstractmethod
    async def revoke_all_for_user(
        self, user_id: str, reason: RevocationReason, now: datetime
    ) -> int:
        """Revokes every not-yet-revoked record of a user.

        Returns:
            int: The number of records revoked.
        """
        raise NotImplementedError

    @abstractmethod
    async def purge_inactive(self, expired_before: datetime, revoked_before: datetime) -> int:
        """Deletes records that expired, or were revoked, before the given instants.

        Returns:
            int: The number of records deleted.
        """
        raise NotImplementedError


class IPasswordResetRepository(ABC):
    """An interface defining the contract for password reset link persistence."""

    @abstractmethod
    async def add(self, record: PasswordResetRecord) -> PasswordResetRecord:
        """Persists a new reset record."""
        raise NotImplementedError

    @abstractmethod
    async def get_by_id(self, record_id: str) -> Optional[PasswordResetRecord]:
        """Retrieves a reset record by id regardless of its state."""
        raise NotImplementedError

    @abstractmethod
    async def invalidate_for_user(self, user_id: str, now: datetime) -> int:
        """Marks every unused reset record of a user as used.

        Returns:
            int: The number of records invalidated.
        """
        raise NotImplementedError

    @abstractmethod
    async def purge(self, before: datetime) -> int:
        """Deletes records that expired or were used before ``before``.

        Returns:
            int: The number of records deleted.
        """
        raise NotImplementedError
