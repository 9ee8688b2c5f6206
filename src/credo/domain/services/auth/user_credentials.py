from datetime import datetime, timezone
from typing import Callable, Optional

from structlog import get_logger

from credo.core.exceptions import EmailAlreadyInUseError, InvalidCredentialsError
from credo.domain.entities.user import User, UserProfile, UserRead
from credo.domain.interfaces.repositories import IUserRepository
from credo.domain.services.auth.hashing import PasswordHasher
from credo.domain.value_objects.email import Email
from credo.domain.value_objects.password import PasswordPolicy

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserCredentialService:
    """Creates accounts, validates login credentials and changes passwords.

    Security Features:
        - Passwords are validated against the policy and bcrypt-hashed (off the
          event loop) before they reach the repository.
        - Login failures are indistinguishable: unknown email and wrong
          password raise the same error after the same amount of bcrypt work.
        - Password hashes never leave this service; public reads return
          :class:`UserRead`.
        - A password change revokes all the user's sessions in the same
          transaction.

    Attributes:
        user_repository (IUserRepository): User persistence.
        hasher (PasswordHasher): bcrypt hashing.
        password_policy (PasswordPolicy): Strength rules for new passwords.
    """

    def __init__(
        self,
        user_repository: IUserRepository,
        hasher: PasswordHasher,
        password_policy: Optional[PasswordPolicy] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.user_repository = user_repository
        self.hasher = hasher
        self.password_policy = password_policy or PasswordPolicy()
        self._clock = clock

    async def create_user(
        self, email: str, password: str, profile: Optional[UserProfile] = None
    ) -> UserRead:
        """Registers a new account.

        Args:
            email: The account email; normalized to lower case.
            password: The plain text password.
            profile: Optional display name, phone and similar details.

        Returns:
            UserRead: The created user, without the password hash.

        Raises:
            ValidationError: If the email is malformed.
            PasswordPolicyError: If the password is too weak.
            EmailAlreadyInUseError: If the email is already registered.
        """
        normalized = Email(email).value
        self.password_policy.validate(password)

        if await self.user_repository.get_by_email(normalized) is not None:
            logger.info("Registration rejected: email in use", email=normalized)
            raise EmailAlreadyInUseError()

        now = self._clock()
        profile_fields = profile.model_dump(exclude_none=True) if profile else {}
        user = User(
            email=normalized,
            password_hash=await self.hasher.hash_password(password),
            created_at=now,
            updated_at=now,
            **profile_fields,
        )
        user = await self.user_repository.create(user)
        await logger.ainfo("User registered", user_id=user.id)
        return UserRead.from_entity(user)

    async def validate_credentials(self, email: str, password: str) -> UserRead:
        """Authenticates an email/password pair.

        Returns:
            UserRead: The authenticated user.

        Raises:
            InvalidCredentialsError: If the account does not exist or the
                password is wrong.
        """
        user = await self.find_entity_by_email(email)
        stored_hash = user.password_hash if user is not None else None
        if not await self.hasher.verify_password(password or "", stored_hash) or user is None:
            logger.info("Credential validation failed", email=email)
            raise InvalidCredentialsError()
        return UserRead.from_entity(user)

    async def find_entity_by_email(self, email: str) -> Optional[User]:
        """Loads the full entity, password hash included. Internal use only."""
        if not isinstance(email, str) or not email.strip():
            return None
        return await self.user_repository.get_by_email(email.strip().lower())

    async def find_by_email(self, email: str) -> Optional[UserRead]:
        user = await self.find_entity_by_email(email)
        return UserRead.from_entity(user) if user is not None else None

    async def find_by_id(self, user_id: str) -> Optional[UserRead]:
        user = await self.user_repository.get_by_id(user_id)
        return UserRead.from_entity(user) if user is not None else None

    async def update_password(
        self, user_id: str, new_password: str, reset_record_id: Optional[str] = None
    ) -> bool:
        """Sets a new password and revokes every session of the user.

        Args:
            user_id: The user whose password changes.
            new_password: The plain text password.
            reset_record_id: The reset link being redeemed, marked used in the
                same transaction.

        Returns:
            bool: False if the user vanished or the reset link was already used.

        Raises:
            PasswordPolicyError: If the password is too weak.
        """
        self.password_policy.validate(new_password)
        password_hash = await self.hasher.hash_password(new_password)
        updated = await self.user_repository.update_password(
            user_id, password_hash, self._clock(), reset_record_id=reset_record_id
        )
        if updated:
            await logger.ainfo("Password changed", user_id=user_id)
        return updated
