from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RateLimitCounter:
    key: str
    count: int
    window_start: datetime


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
