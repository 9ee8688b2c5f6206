"""
Application-wide settings.
"""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Defines application-wide settings like project name, environment and logging.

    Performance Note:
        - OPERATION_TIMEOUT_SECONDS bounds every facade operation end to end;
          keep it above the slowest expected hash + database round trip.
        - HASHING_MAX_WORKERS caps the thread pool that runs bcrypt off the
          event loop. bcrypt releases the GIL, so one worker per core is a
          reasonable ceiling.
    """
    PROJECT_NAME: str = "credo"
    VERSION: str = "0.1.0"
    APP_ENV: str = Field(default="development", pattern="^(development|test|staging|production)$")
    DEBUG: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    APP_URL: str = "http://localhost:3000"
    OPERATION_TIMEOUT_SECONDS: float = Field(gt=0, default=10.0)
    HASHING_MAX_WORKERS: int = Field(ge=1, le=64, default=4)

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """
        Upper-cases the log level and rejects names the logging module does not know.

        Args:
            v: Configured level name.

        Returns:
            The normalized level name.
        """
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {v}")
        return level

    @field_validator("APP_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")
