"""A Value Object representing an email address in the domain.

Email addresses identify accounts, OTP challenges and rate-limit buckets, so
they are normalized once, here, and compared by value everywhere else.
"""

import re
from dataclasses import dataclass
from typing import ClassVar

from credo.core.exceptions import ValidationError
from credo.core.logging import mask_email


@dataclass(frozen=True, slots=True)
class Email:
    """An immutable, self-validating email address.

    This Value Object enforces on instantiation:
    - Surrounding whitespace is stripped and the address is lower-cased.
    - The address has a reasonable length.
    - The address conforms to a standard ``local@domain.tld`` shape.

    Attributes:
        value: The normalized string representation of the email address.
    """

    value: str

    MAX_LENGTH: ClassVar[int] = 254
    MIN_LENGTH: ClassVar[int] = 5
    EMAIL_PATTERN: ClassVar[re.Pattern] = re.compile(
        r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    )

    def __post_init__(self):
        """Performs normalization and validation after initialization."""
        if not isinstance(self.value, str):
            raise ValidationError("Email must be a string.", code="invalid_email")

        normalized_value = self.value.strip().lower()
        object.__setattr__(self, "value", normalized_value)

        if not (self.MIN_LENGTH <= len(normalized_value) <= self.MAX_LENGTH):
            raise ValidationError(
                f"Email length must be between {self.MIN_LENGTH} and {self.MAX_LENGTH} characters.",
                code="invalid_email",
            )
        if not self.EMAIL_PATTERN.match(normalized_value):
            raise ValidationError("Invalid email format.", code="invalid_email")

    @property
    def domain(self) -> str:
        """Returns the domain part of the email address."""
        return self.value.split("@")[1]

    def mask_for_logging(self) -> str:
        """Returns a masked version of the email for safe logging."""
        return mask_email(self.value)

    def __str__(self) -> str:
        return self.value
