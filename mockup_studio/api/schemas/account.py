from __future__ import annotations

from datetime import datetime

from mockup_studio.domain.entities.account import UserAccount

from .base import CamelModel


class AccountResponse(CamelModel):
    id: str
    email: str
    display_name: str | None = None
    plan: str
    credits: int
    subscription_status: str | None = None
    cancel_at_period_end: bool = False
    credits_reset_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, account: UserAccount) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            display_name=account.display_name,
            plan=account.plan,
            credits=account.credits,
            subscription_status=account.subscription_status,
            cancel_at_period_end=account.cancel_at_period_end,
            credits_reset_at=account.credits_reset_at,
            created_at=account.created_at,
        )


class MeResponse(CamelModel):
    ok: bool = True
    created: bool = False
    user: AccountResponse


class AdjustCreditsRequest(CamelModel):
    delta: int
    reason: str | None = None


class AdjustCreditsResponse(CamelModel):
    ok: bool = True
    user_id: str
    previous_credits: int
    new_credits: int


class HealthResponse(CamelModel):
    ok: bool = True
    service: str
    timestamp: datetime
