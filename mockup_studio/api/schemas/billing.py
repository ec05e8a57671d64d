from __future__ import annotations

from datetime import datetime

from .base import CamelModel


class CreateCheckoutSessionRequest(CamelModel):
    plan: str | None = None


class CheckoutSessionResponse(CamelModel):
    ok: bool = True
    url: str
    session_id: str


class CancelSubscriptionResponse(CamelModel):
    ok: bool = True
    cancel_at: datetime | None = None


class SyncSubscriptionResponse(CamelModel):
    ok: bool = True
    plan: str
    credits: int | None = None
    credits_reset_at: datetime | None = None
    message: str


class StripeWebhookResponse(CamelModel):
    received: bool = True
    event_type: str
    handled: bool
    deduped: bool = False
