"""Unit tests for FixedWindowRateLimiter."""

from __future__ import annotations

import pytest

from plantops.api.rate_limit import FixedWindowRateLimiter
from plantops.utils.errors import RateLimitExceededError


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestFixedWindow:
    def test_request_over_quota_is_rejected_with_retry_after(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=60, timer=clock)
        for _ in range(3):
            limiter.hit("10.0.0.1")

        clock.advance(15)
        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.hit("10.0.0.1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 45

    def test_request_after_window_succeeds(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=60, timer=clock)
        for _ in range(3):
            limiter.hit("10.0.0.1")
        with pytest.raises(RateLimitExceededError):
            limiter.hit("10.0.0.1")

        clock.advance(60)
        assert limiter.hit("10.0.0.1") == 2

    def test_remaining_counts_down(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=60, timer=clock)
        assert [limiter.hit("k") for _ in range(3)] == [2, 1, 0]

    def test_retry_after_is_at_least_one_second(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=10, timer=clock)
        limiter.hit("k")
        clock.advance(9.99)
        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.hit("k")
        assert exc_info.value.retry_after == 1

    def test_keys_are_counted_independently(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, timer=clock)
        limiter.hit("10.0.0.1")
        assert limiter.hit("10.0.0.2") == 0

    def test_window_does_not_slide_on_rejected_requests(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, timer=clock)
        limiter.hit("k")
        for _ in range(5):
            clock.advance(10)
            with pytest.raises(RateLimitExceededError):
                limiter.hit("k")
        clock.advance(10)
        assert limiter.hit("k") == 0

    def test_reset_clears_counters(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, timer=clock)
        limiter.hit("k")
        limiter.reset("k")
        assert limiter.hit("k") == 0

    def test_rejects_invalid_configuration(self) -> None:
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(max_requests=0, window_seconds=60)
