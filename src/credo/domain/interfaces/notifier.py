"""Notifier interface for out-of-band delivery of codes and links."""

from abc import ABC, abstractmethod

from credo.domain.value_objects.otp import OtpPurpose


class INotifier(ABC):
    """An interface defining how the service reaches a user's mailbox.

    Delivery errors propagate as
    :class:`~credo.core.exceptions.EmailServiceError`; callers decide whether
    to surface them.
    """

    @abstractmethod
    async def send_otp_code(self, email: str, code: str, purpose: OtpPurpose) -> None:
        """Sends a one-time code.

        Args:
            email: Recipient address.
            code: The numeric code.
            purpose: Whether the code confirms a registration or a reset.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_password_reset_link(self, email: str, reset_url: str) -> None:
        """Sends a password reset link.

        Args:
            email: Recipient address.
            reset_url: The full URL carrying the single-use reset token.
        """
        raise NotImplementedError
