from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from mockup_studio.domain.entities.account import UserAccount


ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})
CANCELING_STATUS = "canceling"


@dataclass(frozen=True)
class PlanCatalog:
    """Maps Stripe price ids to plan codes."""

    monthly_price_id: str
    quarterly_price_id: str
    six_months_price_id: str

    def price_id_for(self, plan: str) -> str | None:
        price_ids = {
            "monthly": self.monthly_price_id,
            "quarterly": self.quarterly_price_id,
            "sixMonths": self.six_months_price_id,
        }
        if plan not in price_ids:
            return None
        return price_ids[plan] or ""

    def plan_for_price(self, price_id: str | None) -> str | None:
        if not price_id:
            return None
        for plan, candidate in (
            ("monthly", self.monthly_price_id),
            ("quarterly", self.quarterly_price_id),
            ("sixMonths", self.six_months_price_id),
        ):
            if candidate and candidate == price_id:
                return plan
        return None

    def missing_env_vars(self) -> list[str]:
        missing: list[str] = []
        if not self.monthly_price_id:
            missing.append("STRIPE_PRICE_MONTHLY_ID")
        if not self.quarterly_price_id:
            missing.append("STRIPE_PRICE_QUARTERLY_ID")
        if not self.six_months_price_id:
            missing.append("STRIPE_PRICE_SIX_MONTHS_ID")
        return missing


def is_subscription_active(status: str | None) -> bool:
    return status in ACTIVE_SUBSCRIPTION_STATUSES


def mirrored_subscription_status(status: str | None, *, cancel_at_period_end: bool) -> str | None:
    """Status stored on the account for a Stripe subscription snapshot.

    Stripe keeps a subscription ``active`` until the period ends even after a
    cancellation was scheduled; the account tracks that as ``canceling`` so the
    expiration job can find it.
    """
    if cancel_at_period_end and is_subscription_active(status):
        return CANCELING_STATUS
    return status


def starts_new_allotment(
    user: UserAccount,
    *,
    plan: str,
    subscription_id: str | None,
    period_end: datetime | None,
) -> bool:
    """True when a subscription snapshot opens a billing period not yet credited.

    Plan credits reset on a new subscription, a plan change or a renewal that
    moves the period end forward. Any other update leaves the balance alone.
    """
    if user.plan != plan or user.stripe_subscription_id != subscription_id:
        return True
    if period_end is None:
        return False
    if user.credits_reset_at is None:
        return True
    return period_end > user.credits_reset_at
