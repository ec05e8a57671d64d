from __future__ import annotations

import logging

from mockup_studio.application.dto.billing import CancelSubscriptionOutput
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.stripe_port import StripePort
from mockup_studio.domain.exceptions import UserNotFoundError, ValidationError
from mockup_studio.domain.services.plans import CANCELING_STATUS


logger = logging.getLogger(__name__)


class CancelSubscriptionUseCase:
    def __init__(self, *, accounts_port: AccountsPort, stripe_port: StripePort):
        self._accounts_port = accounts_port
        self._stripe_port = stripe_port

    def execute(self, *, user_id: str) -> CancelSubscriptionOutput:
        user = self._accounts_port.get_user_by_id(user_id=user_id)
        if user is None:
            raise UserNotFoundError("User not found.")
        if not user.stripe_subscription_id:
            raise ValidationError("No active subscription found")

        snapshot = self._stripe_port.cancel_subscription_at_period_end(
            subscription_id=user.stripe_subscription_id,
        )
        self._accounts_port.update_subscription_state(
            user_id=user.id,
            subscription_id=user.stripe_subscription_id,
            status=CANCELING_STATUS,
            cancel_at_period_end=True,
        )
        cancel_at = snapshot.cancel_at or snapshot.current_period_end
        logger.info(
            "cancel_subscription: scheduled user_id=%s subscription_id=%s cancel_at=%s",
            user.id,
            user.stripe_subscription_id,
            cancel_at,
        )
        return CancelSubscriptionOutput(subscription_id=user.stripe_subscription_id, cancel_at=cancel_at)
