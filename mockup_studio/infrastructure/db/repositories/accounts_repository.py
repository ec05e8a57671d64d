from __future__ import annotations

from datetime import datetime

from sqlalchemy import text

from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.domain.entities.account import CreditAdjustment
from mockup_studio.infrastructure.db.mappers.accounts_mapper import map_row_to_user_account

from .base import SqlRepository


_USER_COLUMNS = """
    id, email, display_name, plan, credits, stripe_customer_id, stripe_subscription_id,
    subscription_status, cancel_at_period_end, credits_reset_at, feedback_email_sent_at,
    created_at, updated_at
"""


class SqlAccountsRepository(SqlRepository, AccountsPort):
    def _fetch_user(self, where: str, params: dict, *, for_update: bool = False):
        sql = f"""
            SELECT {_USER_COLUMNS}
            FROM public.users
            WHERE {where}
            LIMIT 1
            {"FOR UPDATE" if for_update else ""}
        """
        with self._read() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_user_account(row)

    def get_user_by_id(self, *, user_id: str):
        return self._fetch_user("id = :user_id", {"user_id": user_id})

    def get_user_by_email(self, *, email: str):
        return self._fetch_user("lower(email) = :email", {"email": email.strip().lower()})

    def get_user_by_stripe_customer_id(self, *, stripe_customer_id: str):
        return self._fetch_user(
            "stripe_customer_id = :stripe_customer_id",
            {"stripe_customer_id": stripe_customer_id},
        )

    def lock_user(self, *, user_id: str):
        return self._fetch_user("id = :user_id", {"user_id": user_id}, for_update=True)

    def create_user(
        self,
        *,
        user_id: str,
        email: str,
        display_name: str | None,
        credits: int,
        now: datetime,
    ):
        sql = f"""
            INSERT INTO public.users (
                id, email, display_name, plan, credits, cancel_at_period_end, created_at, updated_at
            ) VALUES (
                :id, :email, :display_name, 'free', :credits, false, :now, :now
            )
            ON CONFLICT (id) DO NOTHING
            RETURNING {_USER_COLUMNS}
        """
        params = {
            "id": user_id,
            "email": email,
            "display_name": display_name,
            "credits": max(0, credits),
            "now": now,
        }
        with self._write() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_user_account(row)

    def update_user_stripe_customer_id(self, *, user_id: str, stripe_customer_id: str) -> None:
        sql = """
            UPDATE public.users
            SET stripe_customer_id = :stripe_customer_id,
                updated_at = now()
            WHERE id = :user_id
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "user_id": user_id,
                    "stripe_customer_id": stripe_customer_id,
                },
            )

    def deduct_credits(self, *, user_id: str, amount: int) -> int | None:
        sql = """
            UPDATE public.users
            SET credits = credits - :amount,
                updated_at = now()
            WHERE id = :user_id
              AND credits >= :amount
            RETURNING credits
        """
        with self._write() as conn:
            value = conn.execute(text(sql), {"user_id": user_id, "amount": amount}).scalar()
        return int(value) if value is not None else None

    def increment_credits(self, *, user_id: str, amount: int) -> int | None:
        sql = """
            UPDATE public.users
            SET credits = GREATEST(credits + :amount, 0),
                updated_at = now()
            WHERE id = :user_id
            RETURNING credits
        """
        with self._write() as conn:
            value = conn.execute(text(sql), {"user_id": user_id, "amount": amount}).scalar()
        return int(value) if value is not None else None

    def set_credits(self, *, user_id: str, credits: int) -> int | None:
        sql = """
            UPDATE public.users
            SET credits = :credits,
                updated_at = now()
            WHERE id = :user_id
            RETURNING credits
        """
        with self._write() as conn:
            value = conn.execute(text(sql), {"user_id": user_id, "credits": max(0, credits)}).scalar()
        return int(value) if value is not None else None

    def set_plan_credits(
        self,
        *,
        user_id: str,
        plan: str,
        credits: int,
        credits_reset_at: datetime | None,
    ) -> None:
        sql = """
            UPDATE public.users
            SET plan = :plan,
                credits = :credits,
                credits_reset_at = :credits_reset_at,
                updated_at = now()
            WHERE id = :user_id
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "user_id": user_id,
                    "plan": plan,
                    "credits": max(0, credits),
                    "credits_reset_at": credits_reset_at,
                },
            )

    def update_subscription_state(
        self,
        *,
        user_id: str,
        subscription_id: str | None,
        status: str | None,
        cancel_at_period_end: bool,
    ) -> None:
        sql = """
            UPDATE public.users
            SET stripe_subscription_id = COALESCE(:subscription_id, stripe_subscription_id),
                subscription_status = :status,
                cancel_at_period_end = :cancel_at_period_end,
                updated_at = now()
            WHERE id = :user_id
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "user_id": user_id,
                    "subscription_id": subscription_id,
                    "status": status,
                    "cancel_at_period_end": cancel_at_period_end,
                },
            )

    def downgrade_to_free(self, *, user_id: str) -> None:
        # Balance is left untouched.
        sql = """
            UPDATE public.users
            SET plan = 'free',
                stripe_subscription_id = NULL,
                subscription_status = 'canceled',
                cancel_at_period_end = false,
                credits_reset_at = NULL,
                updated_at = now()
            WHERE id = :user_id
        """
        with self._write() as conn:
            conn.execute(text(sql), {"user_id": user_id})

    def insert_credit_adjustment(self, *, adjustment: CreditAdjustment) -> None:
        sql = """
            INSERT INTO public.credit_adjustments (
                id, user_id, delta, previous_credits, new_credits, reason, admin_email, created_at
            ) VALUES (
                :id, :user_id, :delta, :previous_credits, :new_credits, :reason, :admin_email, :created_at
            )
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "id": adjustment.id,
                    "user_id": adjustment.user_id,
                    "delta": adjustment.delta,
                    "previous_credits": adjustment.previous_credits,
                    "new_credits": adjustment.new_credits,
                    "reason": adjustment.reason,
                    "admin_email": adjustment.admin_email,
                    "created_at": adjustment.created_at,
                },
            )

    def record_processed_stripe_event(
        self,
        *,
        event_id: str,
        event_type: str,
        user_id: str | None,
        user_found: bool,
        processed_at: datetime,
    ) -> bool:
        sql = """
            INSERT INTO public.stripe_events (id, event_type, user_id, user_found, processed_at)
            VALUES (:id, :event_type, :user_id, :user_found, :processed_at)
            ON CONFLICT (id) DO NOTHING
            RETURNING id
        """
        with self._write() as conn:
            inserted = conn.execute(
                text(sql),
                {
                    "id": event_id,
                    "event_type": event_type,
                    "user_id": user_id,
                    "user_found": user_found,
                    "processed_at": processed_at,
                },
            ).scalar()
        return inserted is not None

    def list_expired_canceling_users(self, *, now: datetime):
        sql = f"""
            SELECT {_USER_COLUMNS}
            FROM public.users
            WHERE subscription_status = 'canceling'
              AND credits_reset_at IS NOT NULL
              AND credits_reset_at <= :now
            ORDER BY credits_reset_at ASC
        """
        with self._read() as conn:
            rows = conn.execute(text(sql), {"now": now}).mappings().all()
        return [map_row_to_user_account(row) for row in rows]

    def list_users_pending_feedback_email(
        self,
        *,
        created_from: datetime,
        created_to: datetime,
    ):
        sql = f"""
            SELECT {_USER_COLUMNS}
            FROM public.users
            WHERE feedback_email_sent_at IS NULL
              AND email <> ''
              AND created_at >= :created_from
              AND created_at < :created_to
            ORDER BY created_at ASC
        """
        with self._read() as conn:
            rows = conn.execute(
                text(sql),
                {"created_from": created_from, "created_to": created_to},
            ).mappings().all()
        return [map_row_to_user_account(row) for row in rows]

    def mark_feedback_email_sent(self, *, user_id: str, sent_at: datetime) -> None:
        sql = """
            UPDATE public.users
            SET feedback_email_sent_at = :sent_at,
                updated_at = now()
            WHERE id = :user_id
        """
        with self._write() as conn:
            conn.execute(text(sql), {"user_id": user_id, "sent_at": sent_at})

    def delete_user(self, *, user_id: str) -> bool:
        sql = """
            DELETE FROM public.users
            WHERE id = :user_id
            RETURNING id
        """
        with self._write() as conn:
            deleted = conn.execute(text(sql), {"user_id": user_id}).scalar()
        return deleted is not None
