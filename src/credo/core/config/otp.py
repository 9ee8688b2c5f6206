"""
One-time code challenge settings.
"""
from pydantic import Field
from pydantic_settings import BaseSettings


class OtpSettings(BaseSettings):
    """
    Defines the lifetimes and limits of e-mailed one-time codes.

    Security Note:
        - OTP_MAX_ATTEMPTS bounds online guessing of a 6-digit code; with the
          default of 5 an attacker has a 1 in 200,000 chance per sent code.
        - OTP_RESEND_COOLDOWN_SECONDS throttles mail bombing of one address.
        - The window between proving mailbox control and choosing the new
          password is the ``auth`` cache category TTL (CACHE_TTL_AUTH).
    """
    OTP_CODE_LENGTH: int = Field(ge=4, le=10, default=6)
    OTP_CODE_TTL_SECONDS: int = Field(ge=30, default=600)
    OTP_RESEND_COOLDOWN_SECONDS: int = Field(ge=1, default=60)
    OTP_MAX_ATTEMPTS: int = Field(ge=1, le=20, default=5)
