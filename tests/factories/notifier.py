"""Notifier double that records messages instead of sending them."""

from typing import List, Tuple

from credo.domain.interfaces.notifier import INotifier
from credo.domain.value_objects.otp import OtpPurpose


class RecordingNotifier(INotifier):
    """Keeps every code and link it was asked to deliver."""

    def __init__(self):
        self.codes: List[Tuple[str, str, OtpPurpose]] = []
        self.links: List[Tuple[str, str]] = []

    async def send_otp_code(self, email: str, code: str, purpose: OtpPurpose) -> None:
        self.codes.append((email, code, OtpPurpose(purpose)))

    async def send_password_reset_link(self, email: str, reset_url: str) -> None:
        self.links.append((email, reset_url))

    def last_code(self, email: str) -> str:
        return [code for sent_to, code, _ in self.codes if sent_to == email][-1]

    def last_link(self, email: str) -> str:
        return [url for sent_to, url in self.links if sent_to == email][-1]

    def last_reset_token(self, email: str) -> str:
        return self.last_link(email).split("token=", 1)[1]
