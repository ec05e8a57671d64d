from __future__ import annotations

import logging

from mockup_studio.application.dto.billing import (
    StripeCheckoutCompletedEventData,
    StripeSubscriptionSnapshot,
    StripeWebhookEvent,
    StripeWebhookInput,
    StripeWebhookOutput,
)
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.stripe_port import StripePort
from mockup_studio.domain.exceptions import BillingError
from mockup_studio.domain.services.plans import (
    PlanCatalog,
    is_subscription_active,
    mirrored_subscription_status,
    starts_new_allotment,
)

from .billing_common import parse_credit_amount
from .common import utcnow
from .credit_ledger import CreditLedger


logger = logging.getLogger(__name__)

SUBSCRIPTION_UPSERT_EVENTS = frozenset({"customer.subscription.created", "customer.subscription.updated"})
SUBSCRIPTION_DELETED_EVENT = "customer.subscription.deleted"
CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"
TOP_UP_MARKER = "credit_topup"


class ProcessStripeWebhookUseCase:
    """Applies Stripe events to the ledger.

    Every handled event records its id in the same transaction as the ledger
    mutation, so redelivered events are skipped.
    """

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        stripe_port: StripePort,
        plan_catalog: PlanCatalog,
        subscription_credits: int = 50,
        top_up_credits: int = 50,
    ):
        self._accounts_port = accounts_port
        self._stripe_port = stripe_port
        self._plan_catalog = plan_catalog
        self._subscription_credits = subscription_credits
        self._top_up_credits = top_up_credits

    def execute(self, command: StripeWebhookInput) -> StripeWebhookOutput:
        event = self._stripe_port.verify_webhook(signature=command.signature, payload=command.payload)

        if event.event_type in SUBSCRIPTION_UPSERT_EVENTS:
            return self._handle_subscription_upsert(event)
        if event.event_type == SUBSCRIPTION_DELETED_EVENT:
            return self._handle_subscription_deleted(event)
        if event.event_type == CHECKOUT_COMPLETED_EVENT:
            return self._handle_checkout_completed(event)

        logger.info("stripe_webhook: ignored event_id=%s type=%s", event.event_id, event.event_type)
        return StripeWebhookOutput(event_type=event.event_type, handled=False)

    def _handle_subscription_upsert(self, event: StripeWebhookEvent) -> StripeWebhookOutput:
        subscription = _require_subscription(event)
        user_id, heal_customer_id = self._resolve_user(
            metadata_user_id=subscription.metadata_user_id,
            customer_id=subscription.customer_id,
            allow_provider_lookup=True,
        )
        plan = self._plan_catalog.plan_for_price(subscription.price_id)
        grants_credits = is_subscription_active(subscription.status)

        def _tx(accounts_port: AccountsPort) -> StripeWebhookOutput:
            if not self._claim_event(accounts_port, event, user_id):
                return StripeWebhookOutput(event_type=event.event_type, handled=True, deduped=True)
            if user_id is None:
                return StripeWebhookOutput(event_type=event.event_type, handled=False)
            if grants_credits and plan is None:
                logger.warning(
                    "stripe_webhook: unmapped_price event_id=%s user_id=%s price_id=%s",
                    event.event_id,
                    user_id,
                    subscription.price_id,
                )
                return StripeWebhookOutput(event_type=event.event_type, handled=False)

            account = accounts_port.lock_user(user_id=user_id)
            if account is None:
                return StripeWebhookOutput(event_type=event.event_type, handled=False)
            if heal_customer_id:
                accounts_port.update_user_stripe_customer_id(
                    user_id=user_id,
                    stripe_customer_id=heal_customer_id,
                )
            if grants_credits and starts_new_allotment(
                account,
                plan=plan,
                subscription_id=subscription.subscription_id,
                period_end=subscription.current_period_end,
            ):
                # renewal is an absolute set, unspent credits do not roll over
                CreditLedger(accounts_port=accounts_port).set_plan_credits(
                    user_id=user_id,
                    plan=plan,
                    amount=self._subscription_credits,
                    reset_at=subscription.current_period_end,
                )
            accounts_port.update_subscription_state(
                user_id=user_id,
                subscription_id=subscription.subscription_id,
                status=mirrored_subscription_status(
                    subscription.status,
                    cancel_at_period_end=subscription.cancel_at_period_end,
                ),
                cancel_at_period_end=subscription.cancel_at_period_end,
            )
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        output = self._accounts_port.execute_in_transaction(_tx)
        self._log_outcome(event, user_id, output, customer_id=subscription.customer_id)
        return output

    def _handle_subscription_deleted(self, event: StripeWebhookEvent) -> StripeWebhookOutput:
        subscription = _require_subscription(event)
        user_id = None
        if subscription.customer_id:
            user = self._accounts_port.get_user_by_stripe_customer_id(stripe_customer_id=subscription.customer_id)
            user_id = user.id if user is not None else None

        def _tx(accounts_port: AccountsPort) -> StripeWebhookOutput:
            if not self._claim_event(accounts_port, event, user_id):
                return StripeWebhookOutput(event_type=event.event_type, handled=True, deduped=True)
            if user_id is None:
                return StripeWebhookOutput(event_type=event.event_type, handled=False)
            # balance is left untouched; granted credits stay spendable
            accounts_port.downgrade_to_free(user_id=user_id)
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        output = self._accounts_port.execute_in_transaction(_tx)
        self._log_outcome(event, user_id, output, customer_id=subscription.customer_id)
        return output

    def _handle_checkout_completed(self, event: StripeWebhookEvent) -> StripeWebhookOutput:
        checkout = event.checkout_completed
        if checkout is None:
            raise BillingError("Stripe checkout event missing payload.")
        if not _is_top_up(checkout):
            logger.info(
                "stripe_webhook: checkout_not_top_up event_id=%s mode=%s",
                event.event_id,
                checkout.mode,
            )
            return StripeWebhookOutput(event_type=event.event_type, handled=False)

        credits = parse_credit_amount(checkout.metadata.get("credits"), default=self._top_up_credits)
        user_id, heal_customer_id = self._resolve_user(
            metadata_user_id=checkout.user_id,
            customer_id=checkout.customer_id,
            allow_provider_lookup=True,
        )

        def _tx(accounts_port: AccountsPort) -> StripeWebhookOutput:
            if not self._claim_event(accounts_port, event, user_id):
                return StripeWebhookOutput(event_type=event.event_type, handled=True, deduped=True)
            if user_id is None:
                return StripeWebhookOutput(event_type=event.event_type, handled=False)
            if heal_customer_id:
                accounts_port.update_user_stripe_customer_id(
                    user_id=user_id,
                    stripe_customer_id=heal_customer_id,
                )
            CreditLedger(accounts_port=accounts_port).grant(
                user_id=user_id,
                amount=credits,
                reason=f"stripe_topup:{event.event_id}",
            )
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        output = self._accounts_port.execute_in_transaction(_tx)
        self._log_outcome(event, user_id, output, customer_id=checkout.customer_id)
        return output

    def _resolve_user(
        self,
        *,
        metadata_user_id: str | None,
        customer_id: str | None,
        allow_provider_lookup: bool,
    ) -> tuple[str | None, str | None]:
        """Return ``(user_id, customer_id_to_store)``.

        Lookup order: stored customer id, event metadata, then the customer's
        metadata on Stripe. The second element is set when the account should
        be healed with the customer id.
        """
        if customer_id:
            user = self._accounts_port.get_user_by_stripe_customer_id(stripe_customer_id=customer_id)
            if user is not None:
                return user.id, None

        candidate_ids = []
        if metadata_user_id:
            candidate_ids.append(metadata_user_id)
        if allow_provider_lookup and customer_id:
            provider_user_id = self._stripe_port.get_customer_user_id(customer_id=customer_id)
            if provider_user_id and provider_user_id not in candidate_ids:
                candidate_ids.append(provider_user_id)

        for candidate_id in candidate_ids:
            user = self._accounts_port.get_user_by_id(user_id=candidate_id)
            if user is None:
                continue
            heal = customer_id if customer_id and user.stripe_customer_id != customer_id else None
            return user.id, heal
        return None, None

    def _claim_event(self, accounts_port: AccountsPort, event: StripeWebhookEvent, user_id: str | None) -> bool:
        return accounts_port.record_processed_stripe_event(
            event_id=event.event_id,
            event_type=event.event_type,
            user_id=user_id,
            user_found=user_id is not None,
            processed_at=utcnow(),
        )

    def _log_outcome(
        self,
        event: StripeWebhookEvent,
        user_id: str | None,
        output: StripeWebhookOutput,
        *,
        customer_id: str | None,
    ) -> None:
        if output.deduped:
            logger.info("stripe_webhook: deduped event_id=%s type=%s", event.event_id, event.event_type)
        elif user_id is None:
            logger.warning(
                "stripe_webhook: no_user_found event_id=%s type=%s customer_id=%s",
                event.event_id,
                event.event_type,
                customer_id or "unknown",
            )
        else:
            logger.info(
                "stripe_webhook: processed event_id=%s type=%s user_id=%s handled=%s",
                event.event_id,
                event.event_type,
                user_id,
                output.handled,
            )


def _require_subscription(event: StripeWebhookEvent) -> StripeSubscriptionSnapshot:
    if event.subscription is None:
        raise BillingError("Stripe subscription event missing payload.")
    return event.subscription


def _is_top_up(checkout: StripeCheckoutCompletedEventData) -> bool:
    return checkout.mode == "payment" and checkout.metadata.get("type") == TOP_UP_MARKER
