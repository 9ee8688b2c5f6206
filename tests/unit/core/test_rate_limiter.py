import pytest

from credo.core.rate_limiting import FixedWindowRateLimiter, RateLimitRule
from tests.factories.settings import make_settings


class FakeClock:
    def __init__(self, now_ms: int = 1_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(clock=clock)


@pytest.fixture
def rule():
    return RateLimitRule(window_ms=60_000, max_requests=5, name="auth")


def test_allows_up_to_max_requests_then_denies(limiter, rule):
    # Act
    results = [limiter.check("10.0.0.1", rule) for _ in range(6)]

    # Assert
    assert results == [True, True, True, True, True, False]


def test_allows_again_after_window_expires(limiter, rule, clock):
    # Arrange
    for _ in range(5):
        limiter.check("10.0.0.1", rule)
    assert limiter.check("10.0.0.1", rule) is False

    # Act
    clock.advance(60_000)

    # Assert
    assert limiter.check("10.0.0.1", rule) is True


def test_denied_requests_do_not_extend_the_window(limiter, rule, clock):
    # Arrange
    for _ in range(5):
        limiter.check("10.0.0.1", rule)

    # Act
    clock.advance(30_000)
    limiter.check("10.0.0.1", rule)
    clock.advance(30_000)

    # Assert
    assert limiter.check("10.0.0.1", rule) is True


def test_identifiers_and_rules_are_counted_separately(limiter, rule):
    # Arrange
    other_rule = RateLimitRule(window_ms=60_000, max_requests=1, name="password_reset")
    for _ in range(5):
        limiter.check("10.0.0.1", rule)

    # Assert
    assert limiter.check("10.0.0.2", rule) is True
    assert limiter.check("10.0.0.1", other_rule) is True
    assert limiter.check("10.0.0.1", other_rule) is False


def test_retry_after_seconds_rounds_up(limiter, rule, clock):
    # Arrange
    limiter.check("10.0.0.1", rule)
    clock.advance(10_500)

    # Act
    retry_after = limiter.retry_after_seconds("10.0.0.1", rule)

    # Assert
    assert retry_after == 50
    assert limiter.retry_after_seconds("unknown-client", rule) == 0


def test_sweep_drops_expired_windows(limiter, rule, clock):
    # Arrange
    limiter.check("10.0.0.1", rule)
    clock.advance(30_000)
    limiter.check("10.0.0.2", rule)
    clock.advance(30_000)

    # Act
    removed = limiter.sweep()

    # Assert
    assert removed == 1
    assert limiter.sweep() == 0


def test_disabled_limiter_allows_everything(rule):
    # Arrange
    limiter = FixedWindowRateLimiter(enabled=False)

    # Assert
    assert all(limiter.check("10.0.0.1", rule) for _ in range(50))


def test_rule_for_endpoint_maps_operation_classes():
    # Arrange
    limiter = FixedWindowRateLimiter()

    # Assert
    assert limiter.rule_for_endpoint("login").name == "auth"
    assert limiter.rule_for_endpoint("reset_confirm").name == "password_reset"
    assert limiter.rule_for_endpoint("register_verify").name == "general"
    assert limiter.rule_for_endpoint("reset_verify").name == "general"
    assert limiter.rule_for_endpoint("me").name == "general"
    assert limiter.rule_for_endpoint("login").max_requests == 5


def test_from_settings_uses_configured_budgets():
    # Arrange
    settings = make_settings(RATE_LIMIT_ENABLED=True, RATE_LIMIT_AUTH_MAX_REQUESTS=2)

    # Act
    limiter = FixedWindowRateLimiter.from_settings(settings)

    # Assert
    assert limiter.enabled is True
    assert limiter.rule_for_endpoint("login").max_requests == 2


@pytest.mark.parametrize("window_ms, max_requests", [(0, 5), (60_000, 0)])
def test_rule_rejects_non_positive_values(window_ms, max_requests):
    # Act & Assert
    with pytest.raises(ValueError):
        RateLimitRule(window_ms=window_ms, max_requests=max_requests)
