from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


PlanCode = Literal["free", "monthly", "quarterly", "sixMonths"]

PAID_PLANS: tuple[str, ...] = ("monthly", "quarterly", "sixMonths")


@dataclass(frozen=True)
class UserAccount:
    id: str
    email: str
    display_name: str | None
    plan: PlanCode
    credits: int
    stripe_customer_id: str | None
    stripe_subscription_id: str | None
    subscription_status: str | None
    cancel_at_period_end: bool
    credits_reset_at: datetime | None
    feedback_email_sent_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class CreditAdjustment:
    id: str
    user_id: str
    delta: int
    previous_credits: int
    new_credits: int
    reason: str
    admin_email: str | None
    created_at: datetime


@dataclass(frozen=True)
class ProcessedStripeEvent:
    id: str
    event_type: str
    user_id: str | None
    user_found: bool
    processed_at: datetime
