"""Main service settings and configuration management.

This module composes all the settings from the different modules (app, auth,
otp, database, redis, email, rate limiting) into a single `Settings` class.

Settings are loaded from environment variables and .env files and validated
when `create_settings()` builds them. There is no module-level instance:
the result is passed explicitly to the container that wires the services.

Environment Support:
- Development: Uses .env, SMTP credentials not required, email test mode on
- Test: Uses .env.test, SMTP credentials not required, email test mode on
- Staging: Uses .env.staging, SMTP credentials required
- Production: Uses .env.production, SMTP credentials required
"""

import logging
import os
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import SettingsConfigDict

from .app import AppSettings
from .auth import AuthSettings
from .database import DatabaseSettings
from .email import EmailSettings
from .otp import OtpSettings
from .rate_limit import RateLimitSettings
from .redis import RedisSettings

logger = logging.getLogger(__name__)
logging.getLogger("passlib").setLevel(logging.ERROR)

ENV_FILES = {
    "development": ".env",
    "test": ".env.test",
    "staging": ".env.staging",
    "production": ".env.production",
}


class Settings(
    AppSettings,
    DatabaseSettings,
    RedisSettings,
    AuthSettings,
    OtpSettings,
    RateLimitSettings,
    EmailSettings,
):
    """The main settings class that aggregates all service configuration.

    Environment Support:
        - Development/Test: SMTP credentials not required, test mode enabled
        - Staging/Production: SMTP credentials required, production mode

    Security Note:
        - Ensure all sensitive fields (JWT secrets, database and SMTP passwords)
          are securely stored and never logged or exposed.
        - Validation runs at construction, so a misconfigured deployment fails
          at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    @model_validator(mode="after")
    def _apply_environment_defaults(self) -> "Settings":
        """Enables e-mail test mode outside staging/production and checks SMTP there."""
        if self.APP_ENV in ("development", "test"):
            self.EMAIL_TEST_MODE = True
        else:
            self.validate_smtp_config()
        return self


def create_settings(**overrides) -> Settings:
    """Create a settings instance for the current APP_ENV.

    Args:
        **overrides: Explicit values that take precedence over the environment.

    Returns:
        Settings: Configured settings instance
    """
    env = os.getenv("APP_ENV", "development")
    env_file = ENV_FILES.get(env, ".env")

    if Path(env_file).exists():
        logger.info("Loading environment configuration from %s", env_file)
        settings_instance = Settings(_env_file=env_file, **overrides)
    else:
        logger.warning("No %s file found, using environment variables only (environment: %s)", env_file, env)
        settings_instance = Settings(_env_file=None, **overrides)

    logger.info(
        "Settings loaded (environment: %s, email test mode: %s)",
        settings_instance.APP_ENV,
        settings_instance.EMAIL_TEST_MODE,
    )
    return settings_instance
