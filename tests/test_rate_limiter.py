from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mockup_studio.application.use_cases.rate_limiter import RateLimiter
from mockup_studio.domain.entities.rate_limit import RateLimitCounter
from mockup_studio.domain.exceptions import RateLimitedError
from mockup_studio.domain.services.rate_limit_window import evaluate_window


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(days=1)


class FakeRateLimitPort:
    def __init__(self):
        self.counters: dict[str, RateLimitCounter] = {}
        self.saved = 0

    def execute_in_transaction(self, fn):
        return fn(self)

    def lock_counter(self, *, key: str, now: datetime):
        if key not in self.counters:
            self.counters[key] = RateLimitCounter(key=key, count=0, window_start=now)
        return self.counters[key]

    def save_counter(self, *, counter: RateLimitCounter) -> None:
        self.saved += 1
        self.counters[counter.key] = counter

    def delete_counters_older_than(self, *, cutoff: datetime) -> int:
        stale = [key for key, counter in self.counters.items() if counter.window_start < cutoff]
        for key in stale:
            del self.counters[key]
        return len(stale)


def test_evaluate_window_starts_fresh_window_without_counter():
    decision, counter = evaluate_window(key="k", counter=None, limit=3, window=DAY, now=NOW)

    assert decision.allowed is True
    assert decision.count == 1
    assert counter.window_start == NOW


def test_evaluate_window_rejects_at_limit_and_keeps_counter():
    current = RateLimitCounter(key="k", count=3, window_start=NOW)

    decision, counter = evaluate_window(key="k", counter=current, limit=3, window=DAY, now=NOW + timedelta(hours=1))

    assert decision.allowed is False
    assert decision.count == 3
    assert counter is current


def test_evaluate_window_resets_after_window_elapses():
    current = RateLimitCounter(key="k", count=10, window_start=NOW)

    decision, counter = evaluate_window(
        key="k",
        counter=current,
        limit=10,
        window=DAY,
        now=NOW + DAY + timedelta(seconds=1),
    )

    assert decision.allowed is True
    assert counter.count == 1
    assert counter.window_start == NOW + DAY + timedelta(seconds=1)


def test_evaluate_window_requires_positive_limit():
    with pytest.raises(ValueError):
        evaluate_window(key="k", counter=None, limit=0, window=DAY, now=NOW)


def test_rate_limiter_rejects_eleventh_request_in_window():
    port = FakeRateLimitPort()
    limiter = RateLimiter(rate_limit_port=port)

    decisions = [
        limiter.check_and_increment(key="guest_ip_abc", limit=10, window=DAY, now=NOW + timedelta(minutes=i))
        for i in range(11)
    ]

    assert [item.allowed for item in decisions] == [True] * 10 + [False]
    assert port.counters["guest_ip_abc"].count == 10
    assert port.saved == 10


def test_rate_limiter_allows_again_after_window():
    port = FakeRateLimitPort()
    port.counters["k"] = RateLimitCounter(key="k", count=10, window_start=NOW)
    limiter = RateLimiter(rate_limit_port=port)

    decision = limiter.check_and_increment(key="k", limit=10, window=DAY, now=NOW + timedelta(days=2))

    assert decision.allowed is True
    assert port.counters["k"].count == 1


def test_rate_limiter_keys_are_independent():
    port = FakeRateLimitPort()
    port.counters["a"] = RateLimitCounter(key="a", count=5, window_start=NOW)
    limiter = RateLimiter(rate_limit_port=port)

    assert limiter.check_and_increment(key="a", limit=5, window=DAY, now=NOW).allowed is False
    assert limiter.check_and_increment(key="b", limit=5, window=DAY, now=NOW).allowed is True


def test_enforce_raises_with_message():
    port = FakeRateLimitPort()
    port.counters["k"] = RateLimitCounter(key="k", count=5, window_start=NOW)
    limiter = RateLimiter(rate_limit_port=port)

    with pytest.raises(RateLimitedError, match="slow down"):
        limiter.enforce(key="k", limit=5, window=DAY, message="slow down", now=NOW)
