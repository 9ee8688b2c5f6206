"""Fixed-window rate limiting.

Requests are counted per ``<identifier>:<rule name>`` in windows that start at
the first request after the previous window expired. Within a window up to
``max_requests`` requests are allowed; further requests are rejected without
being counted, so a client that keeps hammering does not extend its own
penalty beyond the window.

Windows live in process memory and are guarded by a lock; call
:meth:`FixedWindowRateLimiter.sweep` periodically to drop expired ones.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass(frozen=True)
class RateLimitRule:
    """A request budget for one operation class.

    Attributes:
        window_ms: Window length in milliseconds.
        max_requests: Requests allowed per window.
        name: Operation class; part of the window key.
    """

    window_ms: int
    max_requests: int
    name: str = "default"

    AUTH: ClassVar[str] = "auth"
    PASSWORD_RESET: ClassVar[str] = "password_reset"
    GENERAL: ClassVar[str] = "general"

    def __post_init__(self) -> None:
        if self.window_ms <= 0:
            raise ValueError("Rate limit window must be positive")
        if self.max_requests <= 0:
            raise ValueError("Max requests must be positive")


@dataclass
class RateLimitWindow:
    """Count and reset instant of one identifier's current window."""

    count: int
    reset_at_ms: int


class FixedWindowRateLimiter:
    """Thread-safe in-memory fixed-window counter.

    Args:
        rules: Operation class name -> rule. Defaults to auth 5/60 s,
            password_reset 3/60 s, general 100/60 s.
        clock: Monotonic clock in milliseconds; injectable for tests.
        enabled: When False every check passes.
    """

    DEFAULT_RULES: ClassVar[Dict[str, RateLimitRule]] = {
        RateLimitRule.AUTH: RateLimitRule(window_ms=60_000, max_requests=5, name=RateLimitRule.AUTH),
        RateLimitRule.PASSWORD_RESET: RateLimitRule(
            window_ms=60_000, max_requests=3, name=RateLimitRule.PASSWORD_RESET
        ),
        RateLimitRule.GENERAL: RateLimitRule(
            window_ms=60_000, max_requests=100, name=RateLimitRule.GENERAL
        ),
    }

    # Operation names that fall under a stricter class than "general".
    ENDPOINT_CLASSES: ClassVar[Dict[str, str]] = {
        "register_start": RateLimitRule.AUTH,
        "login": RateLimitRule.AUTH,
        "refresh": RateLimitRule.AUTH,
        "request_reset": RateLimitRule.PASSWORD_RESET,
        "reset_confirm": RateLimitRule.PASSWORD_RESET,
        "request_reset_link": RateLimitRule.PASSWORD_RESET,
        "confirm_reset_link": RateLimitRule.PASSWORD_RESET,
    }

    def __init__(
        self,
        rules: Optional[Dict[str, RateLimitRule]] = None,
        clock: Callable[[], int] = _monotonic_ms,
        enabled: bool = True,
    ):
        self.rules = {**self.DEFAULT_RULES, **(rules or {})}
        self.enabled = enabled
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "FixedWindowRateLimiter":
        rules = {
            RateLimitRule.AUTH: RateLimitRule(
                settings.RATE_LIMIT_AUTH_WINDOW_MS, settings.RATE_LIMIT_AUTH_MAX_REQUESTS, RateLimitRule.AUTH
            ),
            RateLimitRule.PASSWORD_RESET: RateLimitRule(
                settings.RATE_LIMIT_PASSWORD_RESET_WINDOW_MS,
                settings.RATE_LIMIT_PASSWORD_RESET_MAX_REQUESTS,
                RateLimitRule.PASSWORD_RESET,
            ),
            RateLimitRule.GENERAL: RateLimitRule(
                settings.RATE_LIMIT_GENERAL_WINDOW_MS,
                settings.RATE_LIMIT_GENERAL_MAX_REQUESTS,
                RateLimitRule.GENERAL,
            ),
        }
        return cls(rules=rules, enabled=settings.RATE_LIMIT_ENABLED)

    def rule_for_endpoint(self, endpoint: str) -> RateLimitRule:
        """Resolves the rule of the operation class ``endpoint`` belongs to."""
        return self.rules[self.ENDPOINT_CLASSES.get(endpoint, RateLimitRule.GENERAL)]

    def check(self, identifier: str, rule: RateLimitRule) -> bool:
        """Counts a request and reports whether it is within budget.

        Args:
            identifier: Who is making the request (IP, IP plus email, ...).
            rule: The budget to apply.

        Returns:
            bool: True if the request is allowed.
        """
        if not self.enabled:
            return True
        key = f"{identifier}:{rule.name}"
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_at_ms:
                self._windows[key] = RateLimitWindow(count=1, reset_at_ms=now + rule.window_ms)
                return True
            if window.count >= rule.max_requests:
                allowed = False
            else:
                window.count += 1
                allowed = True
        if not allowed:
            logger.info("Rate limit exceeded", rule=rule.name, client=identifier.split("|", 1)[0])
        return allowed

    def retry_after_seconds(self, identifier: str, rule: RateLimitRule) -> int:
        """Seconds until the identifier's current window resets (0 if none)."""
        with self._lock:
            window = self._windows.get(f"{identifier}:{rule.name}")
            if window is None:
                return 0
            remaining_ms = window.reset_at_ms - self._clock()
        return max(0, -(-remaining_ms // 1000))

    def sweep(self) -> int:
        """Drops expired windows. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, w in self._windows.items() if now >= w.reset_at_ms]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug("Rate limit windows swept", count=len(expired))
        return len(expired)

    def reset(self) -> None:
        """Forgets every window."""
        with self._lock:
            self._windows.clear()
