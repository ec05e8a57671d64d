from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, TypeVar

from mockup_studio.domain.entities.account import CreditAdjustment, UserAccount


TAccountsResult = TypeVar("TAccountsResult")


class AccountsPort(Protocol):
    def execute_in_transaction(self, fn: Callable[[AccountsPort], TAccountsResult]) -> TAccountsResult:
        ...

    def get_user_by_id(self, *, user_id: str) -> UserAccount | None:
        ...

    def get_user_by_email(self, *, email: str) -> UserAccount | None:
        ...

    def get_user_by_stripe_customer_id(self, *, stripe_customer_id: str) -> UserAccount | None:
        ...

    def lock_user(self, *, user_id: str) -> UserAccount | None:
        ...

    def create_user(
        self,
        *,
        user_id: str,
        email: str,
        display_name: str | None,
        credits: int,
        now: datetime,
    ) -> UserAccount | None:
        ...

    def update_user_stripe_customer_id(self, *, user_id: str, stripe_customer_id: str) -> None:
        ...

    def deduct_credits(self, *, user_id: str, amount: int) -> int | None:
        ...

    def increment_credits(self, *, user_id: str, amount: int) -> int | None:
        ...

    def set_credits(self, *, user_id: str, credits: int) -> int | None:
        ...

    def set_plan_credits(
        self,
        *,
        user_id: str,
        plan: str,
        credits: int,
        credits_reset_at: datetime | None,
    ) -> None:
        ...

    def update_subscription_state(
        self,
        *,
        user_id: str,
        subscription_id: str | None,
        status: str | None,
        cancel_at_period_end: bool,
    ) -> None:
        ...

    def downgrade_to_free(self, *, user_id: str) -> None:
        ...

    def insert_credit_adjustment(self, *, adjustment: CreditAdjustment) -> None:
        ...

    def record_processed_stripe_event(
        self,
        *,
        event_id: str,
        event_type: str,
        user_id: str | None,
        user_found: bool,
        processed_at: datetime,
    ) -> bool:
        ...

    def list_expired_canceling_users(self, *, now: datetime) -> list[UserAccount]:
        ...

    def list_users_pending_feedback_email(
        self,
        *,
        created_from: datetime,
        created_to: datetime,
    ) -> list[UserAccount]:
        ...

    def mark_feedback_email_sent(self, *, user_id: str, sent_at: datetime) -> None:
        ...

    def delete_user(self, *, user_id: str) -> bool:
        ...
