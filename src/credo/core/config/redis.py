"""
Redis cache settings.
"""
from pydantic import Field, SecretStr, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings
import logging

logger = logging.getLogger(__name__)


class RedisSettings(BaseSettings):
    """
    Defines settings for the Redis cache connection and key layout.

    Every key written by the service lives under CACHE_KEY_PREFIX and is
    namespaced ``<category>:<identifier>``. Each category has a default TTL
    used when a caller does not pass one explicitly.

    Security Note:
        - REDIS_PASSWORD must be set in production to prevent unauthorized access.
        - Use rediss:// (REDIS_SSL) when Redis is reached over an untrusted network.
    Performance Note:
        - REDIS_SOCKET_TIMEOUT bounds every command; a stalled Redis turns into a
          CacheError rather than a hung request.
    """
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = Field(ge=1, le=65535, default=6379)
    REDIS_DB: int = Field(ge=0, default=0)
    REDIS_PASSWORD: SecretStr = SecretStr("")
    REDIS_SSL: bool = False
    REDIS_URL: str = Field(default="", validate_default=True)
    REDIS_SOCKET_TIMEOUT: float = Field(gt=0, default=2.0)

    CACHE_KEY_PREFIX: str = "credo:"
    CACHE_TTL_AUTH: int = Field(ge=1, default=300)
    CACHE_TTL_GENERAL: int = Field(ge=1, default=600)

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_url(cls, v: str | None, info: ValidationInfo) -> str:
        """
        Assembles the Redis connection URL if not provided explicitly.

        Args:
            v: Explicitly provided URL or None.
            info: Validation context with other field values.

        Returns:
            Assembled or provided Redis URL.
        """
        if v:
            return v

        values = info.data
        protocol = "rediss" if values.get("REDIS_SSL") else "redis"
        redis_password = values.get("REDIS_PASSWORD")
        secret = redis_password.get_secret_value() if redis_password else ""
        password = f":{secret}@" if secret else ""

        url = (
            f"{protocol}://{password}{values.get('REDIS_HOST')}:"
            f"{values.get('REDIS_PORT')}/{values.get('REDIS_DB', 0)}"
        )
        logger.debug("Assembled REDIS_URL (password masked for security).")
        return url

    @model_validator(mode="after")
    def _require_password_outside_development(self) -> "RedisSettings":
        app_env = getattr(self, "APP_ENV", "development")
        if app_env in ("staging", "production") and not self.REDIS_PASSWORD.get_secret_value():
            logger.error("REDIS_PASSWORD must be set in %s environment.", app_env)
            raise ValueError("REDIS_PASSWORD must be set in staging/production environments")
        return self

    @property
    def cache_ttls(self) -> dict[str, int]:
        """Default TTL in seconds per key category."""
        return {
            "auth": self.CACHE_TTL_AUTH,
            "general": self.CACHE_TTL_GENERAL,
        }
