from __future__ import annotations

import logging

from mockup_studio.application.dto.billing import CheckoutSessionOutput, CreateCheckoutSessionInput
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.stripe_port import StripePort
from mockup_studio.domain.entities.account import PAID_PLANS
from mockup_studio.domain.exceptions import BillingConfigError, UserNotFoundError, ValidationError
from mockup_studio.domain.services.plans import PlanCatalog

from .billing_common import append_query, ensure_stripe_customer


logger = logging.getLogger(__name__)


class CreateCheckoutSessionUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        stripe_port: StripePort,
        plan_catalog: PlanCatalog,
    ):
        self._accounts_port = accounts_port
        self._stripe_port = stripe_port
        self._plan_catalog = plan_catalog

    def execute(self, command: CreateCheckoutSessionInput) -> CheckoutSessionOutput:
        if command.plan not in PAID_PLANS:
            raise ValidationError("Invalid plan selected")

        price_id = self._plan_catalog.price_id_for(command.plan)
        if not price_id:
            raise BillingConfigError(
                "Server configuration error: Price ID missing",
                missing_env_vars=self._plan_catalog.missing_env_vars(),
            )
        if not command.success_url or not command.cancel_url:
            raise BillingConfigError("Server configuration error: Stripe redirect URLs missing")

        user = self._accounts_port.get_user_by_id(user_id=command.user_id)
        if user is None:
            raise UserNotFoundError("User not found.")

        customer_id = ensure_stripe_customer(
            user=user,
            accounts_port=self._accounts_port,
            stripe_port=self._stripe_port,
        )
        result = self._stripe_port.create_checkout_session(
            user_id=user.id,
            price_id=price_id,
            success_url=append_query(command.success_url, "session_id={CHECKOUT_SESSION_ID}"),
            cancel_url=command.cancel_url,
            customer_id=customer_id,
            customer_email=user.email,
        )
        logger.info(
            "create_checkout_session: created user_id=%s plan=%s session_id=%s",
            user.id,
            command.plan,
            result.id,
        )
        return CheckoutSessionOutput(session_id=result.id, url=result.url)
