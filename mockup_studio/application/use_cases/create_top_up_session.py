from __future__ import annotations

import logging

from mockup_studio.application.dto.billing import CheckoutSessionOutput, CreateTopUpSessionInput
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.stripe_port import StripePort
from mockup_studio.domain.exceptions import BillingConfigError, UserNotFoundError

from .billing_common import append_query, ensure_stripe_customer


logger = logging.getLogger(__name__)

TOP_UP_UNIT_AMOUNT_CENTS = 1200


class CreateTopUpSessionUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        stripe_port: StripePort,
        top_up_price_id: str | None,
        top_up_credits: int = 50,
    ):
        self._accounts_port = accounts_port
        self._stripe_port = stripe_port
        self._top_up_price_id = top_up_price_id or None
        self._top_up_credits = top_up_credits

    def execute(self, command: CreateTopUpSessionInput) -> CheckoutSessionOutput:
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
        result = self._stripe_port.create_top_up_session(
            user_id=user.id,
            credits=self._top_up_credits,
            price_id=self._top_up_price_id,
            unit_amount_cents=TOP_UP_UNIT_AMOUNT_CENTS,
            success_url=append_query(command.success_url, "topup=success"),
            cancel_url=command.cancel_url,
            customer_id=customer_id,
            customer_email=user.email,
        )
        logger.info("create_top_up_session: created user_id=%s session_id=%s", user.id, result.id)
        return CheckoutSessionOutput(session_id=result.id, url=result.url)
