from __future__ import annotations

import logging
from datetime import datetime, timedelta

from mockup_studio.application.ports.rate_limit_port import RateLimitPort
from mockup_studio.domain.entities.rate_limit import RateLimitDecision
from mockup_studio.domain.exceptions import RateLimitedError
from mockup_studio.domain.services.rate_limit_window import evaluate_window

from .common import utcnow


logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, *, rate_limit_port: RateLimitPort):
        self._rate_limit_port = rate_limit_port

    def check_and_increment(
        self,
        *,
        key: str,
        limit: int,
        window: timedelta,
        now: datetime | None = None,
    ) -> RateLimitDecision:
        moment = now or utcnow()

        def _tx(rate_limit_port: RateLimitPort) -> RateLimitDecision:
            counter = rate_limit_port.lock_counter(key=key, now=moment)
            decision, next_counter = evaluate_window(
                key=key,
                counter=counter,
                limit=limit,
                window=window,
                now=moment,
            )
            if decision.allowed:
                rate_limit_port.save_counter(counter=next_counter)
            return decision

        decision = self._rate_limit_port.execute_in_transaction(_tx)
        if not decision.allowed:
            logger.warning("rate_limiter: limit_exceeded key=%s count=%s limit=%s", key, decision.count, limit)
        return decision

    def enforce(
        self,
        *,
        key: str,
        limit: int,
        window: timedelta,
        message: str,
        now: datetime | None = None,
    ) -> RateLimitDecision:
        decision = self.check_and_increment(key=key, limit=limit, window=window, now=now)
        if not decision.allowed:
            raise RateLimitedError(message)
        return decision
