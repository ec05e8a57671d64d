from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, TypeVar

from mockup_studio.domain.entities.rate_limit import RateLimitCounter


TRateLimitResult = TypeVar("TRateLimitResult")


class RateLimitPort(Protocol):
    def execute_in_transaction(self, fn: Callable[[RateLimitPort], TRateLimitResult]) -> TRateLimitResult:
        ...

    def lock_counter(self, *, key: str, now: datetime) -> RateLimitCounter | None:
        ...

    def save_counter(self, *, counter: RateLimitCounter) -> None:
        ...

    def delete_counters_older_than(self, *, cutoff: datetime) -> int:
        ...
