from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CreateCheckoutSessionInput:
    user_id: str
    plan: str
    success_url: str
    cancel_url: str


@dataclass(frozen=True)
class CreateTopUpSessionInput:
    user_id: str
    success_url: str
    cancel_url: str


@dataclass(frozen=True)
class CheckoutSessionOutput:
    session_id: str
    url: str


@dataclass(frozen=True)
class CancelSubscriptionOutput:
    subscription_id: str
    cancel_at: datetime | None


@dataclass(frozen=True)
class SyncSubscriptionInput:
    user_id: str
    email: str | None


@dataclass(frozen=True)
class SyncSubscriptionOutput:
    plan: str
    message: str
    credits: int | None = None
    credits_reset_at: datetime | None = None


@dataclass(frozen=True)
class StripeWebhookInput:
    signature: str
    payload: bytes


@dataclass(frozen=True)
class StripeWebhookOutput:
    event_type: str
    handled: bool
    deduped: bool = False


@dataclass(frozen=True)
class StripeCheckoutSessionResult:
    id: str
    url: str


@dataclass(frozen=True)
class StripeSubscriptionSnapshot:
    subscription_id: str
    customer_id: str | None
    price_id: str | None
    status: str
    current_period_end: datetime | None
    cancel_at_period_end: bool
    cancel_at: datetime | None = None
    metadata_user_id: str | None = None


@dataclass(frozen=True)
class StripeCheckoutCompletedEventData:
    session_id: str
    mode: str | None
    user_id: str | None
    customer_id: str | None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class StripeWebhookEvent:
    event_id: str
    event_type: str
    subscription: StripeSubscriptionSnapshot | None
    checkout_completed: StripeCheckoutCompletedEventData | None
