"""In-process request throttling."""

from .fixed_window import FixedWindowRateLimiter, RateLimitRule, RateLimitWindow

__all__ = ["FixedWindowRateLimiter", "RateLimitRule", "RateLimitWindow"]
