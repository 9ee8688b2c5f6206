"""
Fixed-window rate limiting settings.
"""
from pydantic import Field
from pydantic_settings import BaseSettings


class RateLimitSettings(BaseSettings):
    """
    Defines the request budgets per operation class.

    Each class is a fixed window: up to ``*_MAX_REQUESTS`` requests per
    ``*_WINDOW_MS`` milliseconds for one identifier (client IP plus email).

    Performance Note:
        - Windows live in process memory. RATE_LIMIT_SWEEP_INTERVAL_SECONDS
          controls how often expired windows are dropped.
    """
    RATE_LIMIT_ENABLED: bool = True

    RATE_LIMIT_AUTH_WINDOW_MS: int = Field(ge=1, default=60_000)
    RATE_LIMIT_AUTH_MAX_REQUESTS: int = Field(ge=1, default=5)
    RATE_LIMIT_PASSWORD_RESET_WINDOW_MS: int = Field(ge=1, default=60_000)
    RATE_LIMIT_PASSWORD_RESET_MAX_REQUESTS: int = Field(ge=1, default=3)
    RATE_LIMIT_GENERAL_WINDOW_MS: int = Field(ge=1, default=60_000)
    RATE_LIMIT_GENERAL_MAX_REQUESTS: int = Field(ge=1, default=100)

    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = Field(ge=1, default=300)
