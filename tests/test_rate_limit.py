"""
Tests for the sliding window rate limiter.
"""

import pytest

from conftest import FakeClock
from gitplatform.utils.rate_limit import SlidingWindowRateLimiter


class TestSlidingWindowRateLimiter:

    def test_admits_up_to_limit_within_window(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=3, window=1.0, clock=clock)

        for _ in range(3):
            assert limiter.is_within_limit("github")
            limiter.record_request("github")

        assert not limiter.is_within_limit("github")
        assert limiter.get_remaining("github") == 0

    def test_window_slides(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=2, window=1.0, clock=clock)
        limiter.record_request("k")
        clock.advance(0.5)
        limiter.record_request("k")
        assert not limiter.is_within_limit("k")

        # The first request leaves the window after one second.
        clock.advance(0.5)
        assert limiter.is_within_limit("k")
        assert limiter.get_remaining("k") == 1

        clock.advance(0.5)
        assert limiter.get_remaining("k") == 2

    def test_check_does_not_record(self):
        limiter = SlidingWindowRateLimiter(limit=1, window=60, clock=FakeClock())
        for _ in range(5):
            assert limiter.is_within_limit("k")
        assert limiter.get_remaining("k") == 1

    def test_reset_time(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=2, window=10.0, clock=clock)
        assert limiter.get_reset_time("k") == 0.0

        limiter.record_request("k")
        clock.advance(4)
        limiter.record_request("k")
        assert limiter.get_reset_time("k") == pytest.approx(6.0)

    def test_keys_are_independent(self):
        limiter = SlidingWindowRateLimiter(limit=1, window=60, clock=FakeClock())
        limiter.record_request("github")
        assert not limiter.is_within_limit("github")
        assert limiter.is_within_limit("gitlab")

    def test_cleanup_drops_idle_keys(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=5, window=1.0, clock=clock)
        limiter.record_request("a")
        limiter.record_request("b")
        clock.advance(0.5)
        limiter.record_request("b")
        clock.advance(0.6)

        assert limiter.cleanup() == 1
        assert limiter.keys() == ["b"]

    def test_stats(self):
        limiter = SlidingWindowRateLimiter(limit=10, window=60, clock=FakeClock())
        limiter.record_request("github")
        assert limiter.stats("github") == {
            "limit": 10,
            "remaining": 9,
            "reset_time": 60.0,
        }

    @pytest.mark.parametrize("key", ["", None, 42])
    def test_malformed_key(self, key):
        limiter = SlidingWindowRateLimiter()
        with pytest.raises(ValueError):
            limiter.is_within_limit(key)

    @pytest.mark.parametrize("kwargs", [{"limit": 0}, {"window": 0}, {"window": -1}])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(**kwargs)
