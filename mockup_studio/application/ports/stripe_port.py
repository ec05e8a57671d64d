from __future__ import annotations

from typing import Protocol

from mockup_studio.application.dto.billing import (
    StripeCheckoutSessionResult,
    StripeSubscriptionSnapshot,
    StripeWebhookEvent,
)


class StripePort(Protocol):
    def create_customer(self, *, user_id: str, email: str, name: str | None) -> str:
        ...

    def find_customer_id_by_email(self, *, email: str) -> str | None:
        ...

    def get_customer_user_id(self, *, customer_id: str) -> str | None:
        ...

    def create_checkout_session(
        self,
        *,
        user_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        customer_id: str | None,
        customer_email: str | None,
    ) -> StripeCheckoutSessionResult:
        ...

    def create_top_up_session(
        self,
        *,
        user_id: str,
        credits: int,
        price_id: str | None,
        unit_amount_cents: int,
        success_url: str,
        cancel_url: str,
        customer_id: str | None,
        customer_email: str | None,
    ) -> StripeCheckoutSessionResult:
        ...

    def cancel_subscription_at_period_end(self, *, subscription_id: str) -> StripeSubscriptionSnapshot:
        ...

    def list_subscriptions(self, *, customer_id: str) -> list[StripeSubscriptionSnapshot]:
        ...

    def verify_webhook(self, *, signature: str, payload: bytes) -> StripeWebhookEvent:
        ...
