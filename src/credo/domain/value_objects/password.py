"""Password policy value object.

The policy encapsulates the strength rules every new password must satisfy,
whether it is chosen at registration or during a password reset.
"""

import re
from dataclasses import dataclass
from typing import ClassVar

from credo.core.exceptions import PasswordPolicyError


@dataclass(frozen=True)
class PasswordPolicy:
    """Strength requirements for account passwords.

    Attributes:
        min_length: Minimum number of characters.
        max_length: Maximum number of characters.
        require_uppercase: At least one uppercase letter.
        require_lowercase: At least one lowercase letter.
        require_digit: At least one digit.
        require_special: At least one character from ``SPECIAL_CHARS``.
    """

    min_length: int = 8
    max_length: int = 128
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_special: bool = True

    SPECIAL_CHARS: ClassVar[str] = "!@#$%^&*()_+-=[]{}|;:,.<>?/~`'\"\\"

    @classmethod
    def from_settings(cls, settings) -> "PasswordPolicy":
        """Builds the policy from the ``PASSWORD_*`` settings."""
        return cls(
            min_length=settings.PASSWORD_MIN_LENGTH,
            max_length=settings.PASSWORD_MAX_LENGTH,
            require_uppercase=settings.PASSWORD_REQUIRE_UPPERCASE,
            require_lowercase=settings.PASSWORD_REQUIRE_LOWERCASE,
            require_digit=settings.PASSWORD_REQUIRE_DIGIT,
            require_special=settings.PASSWORD_REQUIRE_SPECIAL_CHAR,
        )

    def validate(self, password: str) -> None:
        """Checks a candidate password against every rule.

        Args:
            password: The plain text candidate.

        Raises:
            PasswordPolicyError: On the first rule the password violates.
        """
        if not isinstance(password, str) or not password:
            raise PasswordPolicyError("Password cannot be empty")

        if len(password) < self.min_length:
            raise PasswordPolicyError(f"Password must be at least {self.min_length} characters long")

        if len(password) > self.max_length:
            raise PasswordPolicyError(f"Password must not exceed {self.max_length} characters")

        if self.require_uppercase and not re.search(r"[A-Z]", password):
            raise PasswordPolicyError("Password must contain at least one uppercase letter")

        if self.require_lowercase and not re.search(r"[a-z]", password):
            raise PasswordPolicyError("Password must contain at least one lowercase letter")

        if self.require_digit and not re.search(r"\d", password):
            raise PasswordPolicyError("Password must contain at least one digit")

        if self.require_special and not any(char in self.SPECIAL_CHARS for char in password):
            raise PasswordPolicyError("Password must contain at least one special character")
