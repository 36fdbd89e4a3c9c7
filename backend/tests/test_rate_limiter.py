"""Tests for the sliding-window rate limiter."""

import pytest

from tesla.errors import RateLimitExceeded
from tesla.models import ProviderKind
from tesla.rate_limiter import GENERAL, WAKE, RateLimit, RateLimiter


@pytest.fixture
def limiter(clock):
    return RateLimiter(
        limits={
            ProviderKind.TESSIE: RateLimit(calls=3, window_seconds=60),
            ProviderKind.FLEET: RateLimit(calls=10, window_seconds=3600),
        },
        wake_limit=RateLimit(calls=2, window_seconds=120),
        clock=clock,
    )


class TestGeneralLimit:
    """Per-provider call budgets."""

    def test_allows_up_to_limit(self, limiter):
        for _ in range(3):
            assert limiter.can_make_request()
            limiter.record_request()
        assert not limiter.can_make_request()

    def test_can_make_request_does_not_record(self, limiter):
        for _ in range(10):
            limiter.can_make_request()
        assert limiter.get_stats()["calls_used"] == 0

    def test_reopens_only_when_oldest_call_expires(self, limiter, clock):
        limiter.record_request()
        clock.advance(10)
        limiter.record_request()
        limiter.record_request()

        assert not limiter.can_make_request()
        assert limiter.time_until_next_request() == pytest.approx(50)

        clock.advance(49)
        assert not limiter.can_make_request()

        clock.advance(1)
        assert limiter.can_make_request()
        assert limiter.time_until_next_request() == 0

    def test_providers_have_separate_budgets(self, limiter):
        for _ in range(3):
            limiter.record_request(provider=ProviderKind.TESSIE)
        assert not limiter.can_make_request(provider=ProviderKind.TESSIE)
        assert limiter.can_make_request(provider=ProviderKind.FLEET)

    def test_default_provider_follows_attribute(self, limiter):
        for _ in range(3):
            limiter.record_request()
        limiter.provider = ProviderKind.FLEET
        assert limiter.can_make_request()


class TestWakeLimit:
    """Wake requests share a stricter budget across providers."""

    def test_wake_limit_shared_across_providers(self, limiter):
        limiter.record_request(WAKE, ProviderKind.TESSIE)
        limiter.record_request(WAKE, ProviderKind.FLEET)
        assert not limiter.can_make_request(WAKE, ProviderKind.TESSIE)
        assert not limiter.can_make_request(WAKE, ProviderKind.FLEET)
        assert limiter.can_make_request(GENERAL, ProviderKind.TESSIE)

    def test_wake_counts_against_general_budget(self, limiter):
        limiter.record_request(WAKE)
        limiter.record_request(WAKE)
        limiter.record_request(GENERAL)
        assert not limiter.can_make_request(GENERAL)

    def test_general_calls_do_not_consume_wakes(self, limiter):
        limiter.record_request(GENERAL, ProviderKind.FLEET)
        limiter.record_request(GENERAL, ProviderKind.FLEET)
        assert limiter.can_make_request(WAKE, ProviderKind.FLEET)

    def test_wake_wait_uses_wake_window(self, limiter, clock):
        limiter.record_request(WAKE, ProviderKind.FLEET)
        limiter.record_request(WAKE, ProviderKind.FLEET)
        assert limiter.time_until_next_request(WAKE, ProviderKind.FLEET) == pytest.approx(120)


class TestAcquire:
    """Atomic check-and-record."""

    def test_acquire_records(self, limiter):
        limiter.acquire()
        assert limiter.get_stats()["calls_used"] == 1

    def test_acquire_raises_with_retry_after(self, limiter, clock):
        for _ in range(3):
            limiter.acquire()
        clock.advance(15)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.acquire()

        assert exc_info.value.retry_after == pytest.approx(45)
        assert exc_info.value.command_class == GENERAL
        assert limiter.get_stats()["calls_used"] == 3

    def test_history_pruned_to_longest_window(self, limiter, clock):
        limiter.record_request(GENERAL, ProviderKind.TESSIE)
        clock.advance(3601)
        limiter.record_request(GENERAL, ProviderKind.TESSIE)
        assert len(limiter._history) == 1


class TestStats:
    def test_stats_report_usage(self, limiter):
        limiter.acquire(WAKE)
        limiter.acquire()
        stats = limiter.get_stats()
        assert stats["provider"] == "tessie"
        assert stats["calls_used"] == 2
        assert stats["calls_limit"] == 3
        assert stats["wakes_used"] == 1
        assert stats["wakes_limit"] == 2
        assert stats["seconds_until_next"] == 0
