from __future__ import annotations

from typing import Any, Mapping

from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.entities.rate_limit import RateLimitCounter


def _as_str(value: Any) -> str:
    return str(value)


def _as_str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def map_row_to_user_account(row: Mapping[str, Any]) -> UserAccount:
    return UserAccount(
        id=_as_str(row["id"]),
        email=row.get("email") or "",
        display_name=row.get("display_name"),
        plan=row.get("plan") or "free",
        credits=max(0, int(row.get("credits") or 0)),
        stripe_customer_id=_as_str_or_none(row.get("stripe_customer_id")),
        stripe_subscription_id=_as_str_or_none(row.get("stripe_subscription_id")),
        subscription_status=row.get("subscription_status"),
        cancel_at_period_end=bool(row.get("cancel_at_period_end")),
        credits_reset_at=row.get("credits_reset_at"),
        feedback_email_sent_at=row.get("feedback_email_sent_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def map_row_to_rate_limit_counter(row: Mapping[str, Any]) -> RateLimitCounter:
    return RateLimitCounter(
        key=_as_str(row["key"]),
        count=int(row["count"]),
        window_start=row["window_start"],
    )
