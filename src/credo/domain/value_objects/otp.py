"""One-time code value objects."""

import secrets
from enum import Enum


class OtpPurpose(str, Enum):
    """What a one-time code proves control of the mailbox for.

    Codes, attempt counters and resend locks are kept separately per purpose,
    so a registration challenge never satisfies a reset challenge.
    """

    REGISTER = "register"
    RESET = "reset"


def generate_numeric_code(length: int = 6) -> str:
    """Draws a code uniformly from ``0`` to ``10**length - 1``, left-padded with zeros.

    Uses the ``secrets`` CSPRNG.
    """
    return f"{secrets.randbelow(10 ** length):0{length}d}"
