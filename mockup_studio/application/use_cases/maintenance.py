from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from mockup_studio.application.email_templates import render_feedback_email
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.email_port import EmailPort
from mockup_studio.application.ports.rate_limit_port import RateLimitPort
from mockup_studio.application.ports.storage_port import StoragePort
from mockup_studio.application.ports.studio_port import StudioPort
from mockup_studio.domain.exceptions import EmailDeliveryError, UserNotFoundError

from .common import utcnow


logger = logging.getLogger(__name__)

RATE_LIMIT_RETENTION = timedelta(days=7)


@dataclass(frozen=True)
class ExpirationReport:
    downgraded_user_ids: list[str]
    rate_limits_deleted: int


@dataclass(frozen=True)
class FeedbackReport:
    sent: int
    failed: int


@dataclass(frozen=True)
class PurgeReport:
    user_id: str
    content_rows_deleted: int
    guest_sessions_deleted: int
    files_deleted: int


class ExpireCanceledSubscriptionsUseCase:
    """Daily job: end canceling subscriptions past their period and prune rate limits."""

    def __init__(self, *, accounts_port: AccountsPort, rate_limit_port: RateLimitPort):
        self._accounts_port = accounts_port
        self._rate_limit_port = rate_limit_port

    def execute(self, *, now: datetime | None = None) -> ExpirationReport:
        moment = now or utcnow()
        downgraded: list[str] = []
        for user in self._accounts_port.list_expired_canceling_users(now=moment):
            self._accounts_port.downgrade_to_free(user_id=user.id)
            downgraded.append(user.id)
            logger.info("expire_subscriptions: downgraded user_id=%s", user.id)

        deleted = self._rate_limit_port.delete_counters_older_than(cutoff=moment - RATE_LIMIT_RETENTION)
        logger.info(
            "expire_subscriptions: finished downgraded=%s rate_limits_deleted=%s",
            len(downgraded),
            deleted,
        )
        return ExpirationReport(downgraded_user_ids=downgraded, rate_limits_deleted=deleted)


class SendFeedbackEmailsUseCase:
    def __init__(self, *, accounts_port: AccountsPort, email_port: EmailPort, feedback_url: str):
        self._accounts_port = accounts_port
        self._email_port = email_port
        self._feedback_url = feedback_url

    def execute(self, *, now: datetime | None = None) -> FeedbackReport:
        moment = now or utcnow()
        users = self._accounts_port.list_users_pending_feedback_email(
            created_from=moment - timedelta(hours=48),
            created_to=moment - timedelta(hours=24),
        )
        sent = 0
        failed = 0
        for user in users:
            if not user.email:
                continue
            message = render_feedback_email(display_name=user.display_name, feedback_url=self._feedback_url)
            try:
                self._email_port.send_email(
                    to_email=user.email,
                    subject=message.subject,
                    html_content=message.html_content,
                )
            except EmailDeliveryError as exc:
                failed += 1
                logger.warning("feedback_emails: send_failed user_id=%s error=%s", user.id, exc)
                continue
            self._accounts_port.mark_feedback_email_sent(user_id=user.id, sent_at=moment)
            sent += 1

        logger.info("feedback_emails: finished sent=%s failed=%s", sent, failed)
        return FeedbackReport(sent=sent, failed=failed)


class PurgeUserUseCase:
    """Administrative hard delete of an account and everything it owns."""

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        studio_port: StudioPort,
        storage_port: StoragePort | None,
    ):
        self._accounts_port = accounts_port
        self._studio_port = studio_port
        self._storage_port = storage_port

    def execute(self, *, user_ref: str) -> PurgeReport:
        ref = user_ref.strip()
        user = self._accounts_port.get_user_by_id(user_id=ref)
        if user is None and "@" in ref:
            user = self._accounts_port.get_user_by_email(email=ref)
        if user is None:
            raise UserNotFoundError(f"User not found: {ref}")

        files_deleted = 0
        if self._storage_port is not None:
            files_deleted = self._storage_port.delete_prefix(prefix=f"users/{user.id}/")

        def _tx(studio_port: StudioPort) -> tuple[int, int]:
            content = studio_port.delete_user_content(user_id=user.id)
            sessions = studio_port.delete_guest_sessions_by_email(email=user.email) if user.email else 0
            return content, sessions

        content_deleted, sessions_deleted = self._studio_port.execute_in_transaction(_tx)
        self._accounts_port.delete_user(user_id=user.id)

        logger.info(
            "purge_user: purged user_id=%s content=%s guest_sessions=%s files=%s",
            user.id,
            content_deleted,
            sessions_deleted,
            files_deleted,
        )
        return PurgeReport(
            user_id=user.id,
            content_rows_deleted=content_deleted,
            guest_sessions_deleted=sessions_deleted,
            files_deleted=files_deleted,
        )
