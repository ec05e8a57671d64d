from __future__ import annotations

import logging

from mockup_studio.application.dto.billing import SyncSubscriptionInput, SyncSubscriptionOutput
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.stripe_port import StripePort
from mockup_studio.domain.exceptions import UserNotFoundError
from mockup_studio.domain.services.plans import (
    PlanCatalog,
    is_subscription_active,
    mirrored_subscription_status,
    starts_new_allotment,
)

from .credit_ledger import CreditLedger


logger = logging.getLogger(__name__)


class SyncSubscriptionUseCase:
    """Pull the current subscription from Stripe when a webhook was missed."""

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        stripe_port: StripePort,
        plan_catalog: PlanCatalog,
        subscription_credits: int = 50,
    ):
        self._accounts_port = accounts_port
        self._stripe_port = stripe_port
        self._plan_catalog = plan_catalog
        self._subscription_credits = subscription_credits

    def execute(self, command: SyncSubscriptionInput) -> SyncSubscriptionOutput:
        user = self._accounts_port.get_user_by_id(user_id=command.user_id)
        if user is None:
            raise UserNotFoundError("User not found.")

        customer_id = user.stripe_customer_id
        if not customer_id and command.email:
            customer_id = self._stripe_port.find_customer_id_by_email(email=command.email)
            if customer_id:
                self._accounts_port.update_user_stripe_customer_id(
                    user_id=user.id,
                    stripe_customer_id=customer_id,
                )
                logger.info("sync_subscription: customer_found_by_email user_id=%s customer_id=%s", user.id, customer_id)

        if not customer_id:
            return SyncSubscriptionOutput(plan="free", message="No Stripe customer found. Not subscribed.")

        subscriptions = self._stripe_port.list_subscriptions(customer_id=customer_id)
        active = next((sub for sub in subscriptions if is_subscription_active(sub.status)), None)
        if active is None:
            logger.info("sync_subscription: no_active_subscription user_id=%s customer_id=%s", user.id, customer_id)
            return SyncSubscriptionOutput(plan="free", message="No active subscription found.")

        plan = self._plan_catalog.plan_for_price(active.price_id)
        if plan is None:
            logger.warning(
                "sync_subscription: unmapped_price user_id=%s subscription_id=%s price_id=%s",
                user.id,
                active.subscription_id,
                active.price_id,
            )
            return SyncSubscriptionOutput(
                plan=user.plan,
                message="Subscription price is not recognized. No changes were made.",
            )

        def _tx(accounts_port: AccountsPort) -> SyncSubscriptionOutput:
            account = accounts_port.lock_user(user_id=user.id)
            if account is None:
                raise UserNotFoundError("User not found.")
            if starts_new_allotment(
                account,
                plan=plan,
                subscription_id=active.subscription_id,
                period_end=active.current_period_end,
            ):
                CreditLedger(accounts_port=accounts_port).set_plan_credits(
                    user_id=account.id,
                    plan=plan,
                    amount=self._subscription_credits,
                    reset_at=active.current_period_end,
                )
                credits = self._subscription_credits
                message = f"Subscription synced! You now have {credits} credits."
            else:
                credits = account.credits
                message = "Subscription is already up to date."
            accounts_port.update_subscription_state(
                user_id=account.id,
                subscription_id=active.subscription_id,
                status=mirrored_subscription_status(
                    active.status,
                    cancel_at_period_end=active.cancel_at_period_end,
                ),
                cancel_at_period_end=active.cancel_at_period_end,
            )
            return SyncSubscriptionOutput(
                plan=plan,
                message=message,
                credits=credits,
                credits_reset_at=active.current_period_end,
            )

        output = self._accounts_port.execute_in_transaction(_tx)
        logger.info(
            "sync_subscription: synced user_id=%s plan=%s status=%s credits=%s",
            user.id,
            plan,
            active.status,
            output.credits,
        )
        return output
