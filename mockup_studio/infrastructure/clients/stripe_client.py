from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import stripe

from mockup_studio.application.dto.billing import (
    StripeCheckoutCompletedEventData,
    StripeCheckoutSessionResult,
    StripeSubscriptionSnapshot,
    StripeWebhookEvent,
)
from mockup_studio.application.ports.stripe_port import StripePort
from mockup_studio.domain.exceptions import BillingConfigError, BillingError, BillingSignatureError


logger = logging.getLogger(__name__)

USER_METADATA_KEY = "firebaseUid"


class StripeClient(StripePort):
    def __init__(self, *, secret_key: str, webhook_secret: str):
        stripe.api_key = secret_key
        self._webhook_secret = webhook_secret

    def create_customer(self, *, user_id: str, email: str, name: str | None) -> str:
        payload: dict = {"email": email, "metadata": {USER_METADATA_KEY: user_id}}
        if name:
            payload["name"] = name
        try:
            customer = stripe.Customer.create(**payload)
        except Exception as exc:  # pragma: no cover - external API
            raise BillingError("Failed to create Stripe customer.") from exc

        customer_id = _field(customer, "id")
        if not customer_id:
            raise BillingError("Stripe customer id is missing.")
        return str(customer_id)

    def find_customer_id_by_email(self, *, email: str) -> str | None:
        try:
            customers = stripe.Customer.list(email=email, limit=1)
        except Exception as exc:  # pragma: no cover - external API
            raise BillingError("Failed to look up Stripe customer.") from exc
        data = _field(customers, "data", [])
        if not data:
            return None
        customer_id = _field(data[0], "id")
        return str(customer_id) if customer_id else None

    def get_customer_user_id(self, *, customer_id: str) -> str | None:
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except Exception as exc:  # pragma: no cover - external API
            raise BillingError("Failed to retrieve Stripe customer.") from exc
        if _field(customer, "deleted", False):
            return None
        user_id = _field(_field(customer, "metadata", {}), USER_METADATA_KEY)
        return str(user_id) if user_id else None

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
        payload: dict = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": user_id,
            "metadata": {USER_METADATA_KEY: user_id},
            "subscription_data": {"metadata": {USER_METADATA_KEY: user_id}},
            "allow_promotion_codes": True,
        }
        _attach_customer(payload, customer_id=customer_id, customer_email=customer_email)
        return self._create_session(payload)

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
        if price_id:
            line_item: dict = {"price": price_id, "quantity": 1}
        else:
            line_item = {
                "price_data": {
                    "currency": "usd",
                    "unit_amount": unit_amount_cents,
                    "product_data": {
                        "name": f"{credits} credits",
                        "description": f"One-time top-up of {credits} mockup credits",
                    },
                },
                "quantity": 1,
            }
        payload: dict = {
            "mode": "payment",
            "line_items": [line_item],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": user_id,
            "metadata": {
                USER_METADATA_KEY: user_id,
                "type": "credit_topup",
                "credits": str(credits),
            },
        }
        _attach_customer(payload, customer_id=customer_id, customer_email=customer_email)
        return self._create_session(payload)

    def cancel_subscription_at_period_end(self, *, subscription_id: str) -> StripeSubscriptionSnapshot:
        try:
            subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
        except Exception as exc:  # pragma: no cover - external API
            raise BillingError("Failed to cancel Stripe subscription.") from exc
        return _to_subscription_snapshot(subscription)

    def list_subscriptions(self, *, customer_id: str) -> list[StripeSubscriptionSnapshot]:
        try:
            subscriptions = stripe.Subscription.list(customer=customer_id, status="all", limit=10)
        except Exception as exc:  # pragma: no cover - external API
            raise BillingError("Failed to list Stripe subscriptions.") from exc
        return [_to_subscription_snapshot(item) for item in _field(subscriptions, "data", [])]

    def verify_webhook(self, *, signature: str, payload: bytes) -> StripeWebhookEvent:
        if not self._webhook_secret:
            raise BillingConfigError("STRIPE_WEBHOOK_SECRET is required.", missing_env_vars=["STRIPE_WEBHOOK_SECRET"])
        try:
            stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=self._webhook_secret)
        except Exception as exc:
            raise BillingSignatureError("Invalid Stripe webhook signature.") from exc
        return parse_webhook_event(json.loads(payload))

    def _create_session(self, payload: dict) -> StripeCheckoutSessionResult:
        try:
            session = stripe.checkout.Session.create(**payload)
        except Exception as exc:  # pragma: no cover - external API
            raise BillingError("Failed to create Stripe checkout session.") from exc

        session_id = _field(session, "id")
        session_url = _field(session, "url")
        if not session_id or not session_url:
            raise BillingError("Stripe checkout session response is incomplete.")
        return StripeCheckoutSessionResult(id=str(session_id), url=str(session_url))


def parse_webhook_event(event: dict) -> StripeWebhookEvent:
    event_id = str(event.get("id", ""))
    event_type = str(event.get("type", ""))
    data_object = (event.get("data") or {}).get("object") or {}

    if event_type.startswith("customer.subscription."):
        return StripeWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            subscription=_to_subscription_snapshot(data_object),
            checkout_completed=None,
        )

    if event_type == "checkout.session.completed":
        metadata = dict(data_object.get("metadata") or {})
        return StripeWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            subscription=None,
            checkout_completed=StripeCheckoutCompletedEventData(
                session_id=str(data_object.get("id", "")),
                mode=data_object.get("mode"),
                user_id=metadata.get(USER_METADATA_KEY) or data_object.get("client_reference_id"),
                customer_id=data_object.get("customer"),
                metadata=metadata,
            ),
        )

    return StripeWebhookEvent(
        event_id=event_id,
        event_type=event_type,
        subscription=None,
        checkout_completed=None,
    )


def _to_subscription_snapshot(data: Any) -> StripeSubscriptionSnapshot:
    items = _field(_field(data, "items", {}), "data", [])
    first_item = items[0] if items else None
    price_id = _field(_field(first_item, "price", {}), "id")
    # Newer API versions report the period on the subscription item.
    period_end = _field(data, "current_period_end") or _field(first_item, "current_period_end")
    metadata_user_id = _field(_field(data, "metadata", {}), USER_METADATA_KEY)
    return StripeSubscriptionSnapshot(
        subscription_id=str(_field(data, "id", "")),
        customer_id=_as_customer_id(_field(data, "customer")),
        price_id=str(price_id) if price_id else None,
        status=str(_field(data, "status", "")),
        current_period_end=_to_datetime(period_end),
        cancel_at_period_end=bool(_field(data, "cancel_at_period_end", False)),
        cancel_at=_to_datetime(_field(data, "cancel_at")),
        metadata_user_id=str(metadata_user_id) if metadata_user_id else None,
    )


def _attach_customer(payload: dict, *, customer_id: str | None, customer_email: str | None) -> None:
    if customer_id:
        payload["customer"] = customer_id
    elif customer_email:
        payload["customer_email"] = customer_email


def _as_customer_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    customer_id = _field(value, "id")
    return str(customer_id) if customer_id else None


def _field(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, IndexError, TypeError, AttributeError):
        return default
    return default if value is None else value


def _to_datetime(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)
