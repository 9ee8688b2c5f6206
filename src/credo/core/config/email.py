"""Email configuration settings for the Credo service.

This module defines the parameters used to deliver one-time codes and
password reset links. Provides secure defaults and validation for production
environments.
"""

from typing import Optional

from pydantic import EmailStr, Field, SecretStr
from pydantic_settings import BaseSettings


class EmailSettings(BaseSettings):
    """Email configuration settings with secure defaults and validation.

    Security considerations:
    - SMTP credentials are handled as SecretStr to prevent logging
    - TLS is enforced by default for security
    - Templates are rendered with autoescaping enabled

    Attributes:
        SMTP_HOST: SMTP server hostname
        SMTP_PORT: SMTP server port (587 for STARTTLS, 465 for SSL)
        SMTP_USERNAME: SMTP authentication username
        SMTP_PASSWORD: SMTP authentication password (SecretStr)
        SMTP_USE_TLS: Upgrade the connection with STARTTLS
        SMTP_USE_SSL: Connect over implicit TLS
        SMTP_TIMEOUT_SECONDS: Socket timeout for a single delivery attempt
        SMTP_MAX_RETRIES: Delivery attempts before an EmailServiceError surfaces
        FROM_EMAIL: Default sender email address
        FROM_NAME: Default sender name
        EMAIL_TEMPLATES_DIR: Directory containing email templates; empty
            means the templates bundled with the package
        PASSWORD_RESET_URL_BASE: Base URL for password reset links
        EMAIL_TEST_MODE: Log messages instead of sending them
    """

    # SMTP Configuration
    SMTP_HOST: str = Field(
        default="localhost",
        description="SMTP server hostname"
    )
    SMTP_PORT: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (587 for STARTTLS, 465 for SSL)"
    )
    SMTP_USERNAME: Optional[str] = Field(
        default=None,
        description="SMTP authentication username"
    )
    SMTP_PASSWORD: Optional[SecretStr] = Field(
        default=None,
        description="SMTP authentication password"
    )
    SMTP_USE_TLS: bool = Field(
        default=True,
        description="Enable STARTTLS (recommended for production)"
    )
    SMTP_USE_SSL: bool = Field(
        default=False,
        description="Enable implicit SSL (alternative to STARTTLS)"
    )
    SMTP_TIMEOUT_SECONDS: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Socket timeout for one delivery attempt"
    )
    SMTP_MAX_RETRIES: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Delivery attempts before giving up"
    )

    # Email Headers
    FROM_EMAIL: EmailStr = Field(
        default="noreply@example.com",
        description="Default sender email address"
    )
    FROM_NAME: str = Field(
        default="Credo",
        description="Default sender name"
    )

    # Template Configuration
    EMAIL_TEMPLATES_DIR: str = Field(
        default="",
        description="Directory containing email templates (empty: bundled templates)"
    )

    # Password Reset Configuration
    PASSWORD_RESET_URL_BASE: str = Field(
        default="http://localhost:3000/reset-password",
        description="Base URL for password reset links in frontend"
    )

    # Test Configuration
    EMAIL_TEST_MODE: bool = Field(
        default=False,
        description="Enable test mode (emails logged instead of sent)"
    )

    def validate_smtp_config(self) -> None:
        """Validate SMTP configuration for production use.

        Raises:
            ValueError: If SMTP configuration is invalid or insecure
        """
        # Skip validation in non-production or test environments
        if self.EMAIL_TEST_MODE or getattr(self, "APP_ENV", "development") not in {"production", "staging"}:
            return

        if not self.SMTP_USERNAME or not self.SMTP_PASSWORD:
            raise ValueError(
                "SMTP_USERNAME and SMTP_PASSWORD are required in production"
            )

        if not (self.SMTP_USE_TLS or self.SMTP_USE_SSL):
            raise ValueError(
                "Either SMTP_USE_TLS or SMTP_USE_SSL must be enabled for security"
            )

        if self.SMTP_USE_TLS and self.SMTP_USE_SSL:
            raise ValueError(
                "Cannot enable both SMTP_USE_TLS and SMTP_USE_SSL simultaneously"
            )
