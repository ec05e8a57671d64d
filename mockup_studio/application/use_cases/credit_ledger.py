from __future__ import annotations

import logging
from datetime import datetime
from uuid import uuid4

from mockup_studio.application.dto.account import AdjustCreditsInput, AdjustCreditsOutput, CreditCheck
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.domain.entities.account import CreditAdjustment
from mockup_studio.domain.exceptions import InsufficientCreditsError, UserNotFoundError, ValidationError

from .common import utcnow


logger = logging.getLogger(__name__)


class CreditLedger:
    """Balance checks, deductions and grants over the accounts store.

    Deductions are a single conditional decrement, so two concurrent requests
    cannot both spend credits that only one of them is entitled to.
    """

    def __init__(self, *, accounts_port: AccountsPort):
        self._accounts_port = accounts_port

    def check_and_reserve(self, *, user_id: str, cost: int) -> CreditCheck:
        if cost < 0:
            raise ValidationError("cost must be a non-negative integer.")
        user = self._accounts_port.get_user_by_id(user_id=user_id)
        if user is None:
            raise UserNotFoundError("User not found.")
        if user.credits < cost:
            logger.info(
                "credit_ledger: insufficient_credits user_id=%s balance=%s cost=%s",
                user_id,
                user.credits,
                cost,
            )
            raise InsufficientCreditsError("Insufficient credits")
        return CreditCheck(ok=True, remaining=user.credits)

    def deduct(self, *, user_id: str, amount: int) -> int:
        if amount <= 0:
            user = self._accounts_port.get_user_by_id(user_id=user_id)
            if user is None:
                raise UserNotFoundError("User not found.")
            return user.credits

        remaining = self._accounts_port.deduct_credits(user_id=user_id, amount=amount)
        if remaining is None:
            if self._accounts_port.get_user_by_id(user_id=user_id) is None:
                raise UserNotFoundError("User not found.")
            logger.warning(
                "credit_ledger: deduct_rejected user_id=%s amount=%s",
                user_id,
                amount,
            )
            raise InsufficientCreditsError("Insufficient credits")

        logger.info(
            "credit_ledger: deducted user_id=%s amount=%s remaining=%s",
            user_id,
            amount,
            remaining,
        )
        return remaining

    def grant(self, *, user_id: str, amount: int, reason: str) -> int:
        if amount <= 0:
            raise ValidationError("amount must be a positive integer.")
        balance = self._accounts_port.increment_credits(user_id=user_id, amount=amount)
        if balance is None:
            raise UserNotFoundError("User not found.")
        logger.info(
            "credit_ledger: granted user_id=%s amount=%s balance=%s reason=%s",
            user_id,
            amount,
            balance,
            reason,
        )
        return balance

    def set_plan_credits(
        self,
        *,
        user_id: str,
        plan: str,
        amount: int,
        reset_at: datetime | None,
    ) -> None:
        if amount < 0:
            raise ValidationError("amount must be a non-negative integer.")
        self._accounts_port.set_plan_credits(
            user_id=user_id,
            plan=plan,
            credits=amount,
            credits_reset_at=reset_at,
        )
        logger.info(
            "credit_ledger: plan_credits_set user_id=%s plan=%s credits=%s reset_at=%s",
            user_id,
            plan,
            amount,
            reset_at,
        )

    def adjust(self, command: AdjustCreditsInput) -> AdjustCreditsOutput:
        reason = command.reason.strip()
        if not reason:
            raise ValidationError("Reason is required")

        def _tx(accounts_port: AccountsPort) -> AdjustCreditsOutput:
            user = accounts_port.lock_user(user_id=command.user_id)
            if user is None:
                raise UserNotFoundError("User not found")

            previous = user.credits
            new_balance = max(0, previous + command.delta)
            accounts_port.set_credits(user_id=user.id, credits=new_balance)
            accounts_port.insert_credit_adjustment(
                adjustment=CreditAdjustment(
                    id=str(uuid4()),
                    user_id=user.id,
                    delta=command.delta,
                    previous_credits=previous,
                    new_credits=new_balance,
                    reason=reason,
                    admin_email=command.admin_email,
                    created_at=utcnow(),
                )
            )
            return AdjustCreditsOutput(user_id=user.id, previous_credits=previous, new_credits=new_balance)

        output = self._accounts_port.execute_in_transaction(_tx)
        logger.info(
            "credit_ledger: adjusted user_id=%s delta=%s previous=%s new=%s admin=%s",
            output.user_id,
            command.delta,
            output.previous_credits,
            output.new_credits,
            command.admin_email,
        )
        return output
