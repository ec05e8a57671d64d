from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from mockup_studio.api.deps import (
    get_cancel_subscription_use_case,
    get_create_checkout_session_use_case,
    get_create_top_up_session_use_case,
    get_current_account,
    get_process_stripe_webhook_use_case,
    get_sync_subscription_use_case,
)
from mockup_studio.api.errors import to_http_exception
from mockup_studio.api.schemas.billing import (
    CancelSubscriptionResponse,
    CheckoutSessionResponse,
    CreateCheckoutSessionRequest,
    StripeWebhookResponse,
    SyncSubscriptionResponse,
)
from mockup_studio.application.dto.billing import (
    CreateCheckoutSessionInput,
    CreateTopUpSessionInput,
    StripeWebhookInput,
    SyncSubscriptionInput,
)
from mockup_studio.application.use_cases.cancel_subscription import CancelSubscriptionUseCase
from mockup_studio.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from mockup_studio.application.use_cases.create_top_up_session import CreateTopUpSessionUseCase
from mockup_studio.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from mockup_studio.application.use_cases.sync_subscription import SyncSubscriptionUseCase
from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.exceptions import BillingConfigError, BillingSignatureError, DomainError
from mockup_studio.shared.config import get_settings


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/createCheckoutSession", response_model=CheckoutSessionResponse)
def create_checkout_session(
    req: CreateCheckoutSessionRequest,
    account: UserAccount = Depends(get_current_account),
    use_case: CreateCheckoutSessionUseCase = Depends(get_create_checkout_session_use_case),
):
    settings = get_settings()
    try:
        output = use_case.execute(
            CreateCheckoutSessionInput(
                user_id=account.id,
                plan=req.plan or "",
                success_url=settings.stripe_success_url,
                cancel_url=settings.stripe_cancel_url,
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return CheckoutSessionResponse(url=output.url, session_id=output.session_id)


@router.post("/createTopUpSession", response_model=CheckoutSessionResponse)
def create_top_up_session(
    account: UserAccount = Depends(get_current_account),
    use_case: CreateTopUpSessionUseCase = Depends(get_create_top_up_session_use_case),
):
    settings = get_settings()
    try:
        output = use_case.execute(
            CreateTopUpSessionInput(
                user_id=account.id,
                success_url=settings.stripe_success_url,
                cancel_url=settings.stripe_cancel_url,
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return CheckoutSessionResponse(url=output.url, session_id=output.session_id)


@router.post("/cancelSubscription", response_model=CancelSubscriptionResponse)
def cancel_subscription(
    account: UserAccount = Depends(get_current_account),
    use_case: CancelSubscriptionUseCase = Depends(get_cancel_subscription_use_case),
):
    try:
        output = use_case.execute(user_id=account.id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return CancelSubscriptionResponse(cancel_at=output.cancel_at)


@router.post("/syncSubscription", response_model=SyncSubscriptionResponse)
def sync_subscription(
    account: UserAccount = Depends(get_current_account),
    use_case: SyncSubscriptionUseCase = Depends(get_sync_subscription_use_case),
):
    try:
        output = use_case.execute(SyncSubscriptionInput(user_id=account.id, email=account.email or None))
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return SyncSubscriptionResponse(
        plan=output.plan,
        credits=output.credits,
        credits_reset_at=output.credits_reset_at,
        message=output.message,
    )


@router.post("/stripeWebhook", response_model=StripeWebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    use_case: ProcessStripeWebhookUseCase = Depends(get_process_stripe_webhook_use_case),
):
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header.")

    payload = await request.body()
    try:
        output = use_case.execute(
            StripeWebhookInput(
                signature=stripe_signature,
                payload=payload,
            )
        )
    except BillingSignatureError as exc:
        logger.warning("stripe_webhook: invalid_signature error=%s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except BillingConfigError as exc:
        logger.error("stripe_webhook: misconfigured error=%s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except Exception:  # noqa: BLE001
        # Provider retries cannot fix processing errors and could double-apply credits.
        logger.exception("stripe_webhook: processing_failed")
        return StripeWebhookResponse(event_type="unknown", handled=False)

    return StripeWebhookResponse(
        event_type=output.event_type,
        handled=output.handled,
        deduped=output.deduped,
    )
