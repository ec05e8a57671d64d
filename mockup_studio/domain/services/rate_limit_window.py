from __future__ import annotations

from datetime import datetime, timedelta

from mockup_studio.domain.entities.rate_limit import RateLimitCounter, RateLimitDecision


def evaluate_window(
    *,
    key: str,
    counter: RateLimitCounter | None,
    limit: int,
    window: timedelta,
    now: datetime,
) -> tuple[RateLimitDecision, RateLimitCounter]:
    """Fixed window anchored to the first action.

    Returns the decision and the counter state to persist. A rejected action
    leaves the counter untouched.
    """
    if limit <= 0:
        raise ValueError("limit must be a positive integer.")

    if counter is None or now - counter.window_start > window:
        fresh = RateLimitCounter(key=key, count=1, window_start=now)
        return RateLimitDecision(allowed=True, count=1), fresh

    if counter.count >= limit:
        return RateLimitDecision(allowed=False, count=counter.count), counter

    bumped = RateLimitCounter(key=key, count=counter.count + 1, window_start=counter.window_start)
    return RateLimitDecision(allowed=True, count=bumped.count), bumped
