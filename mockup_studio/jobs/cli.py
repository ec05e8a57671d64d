"""Scheduled and administrative jobs.

Usage::

    python -m mockup_studio.jobs credit-expiration
    python -m mockup_studio.jobs feedback-emails
    python -m mockup_studio.jobs purge-user <uid-or-email>
    python -m mockup_studio.jobs init-db
"""
from __future__ import annotations

import argparse
import logging
import sys

from mockup_studio.application.use_cases.maintenance import (
    ExpireCanceledSubscriptionsUseCase,
    PurgeUserUseCase,
    SendFeedbackEmailsUseCase,
)
from mockup_studio.domain.exceptions import DomainError
from mockup_studio.infrastructure.db.engine import create_schema, get_engine
from mockup_studio.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from mockup_studio.infrastructure.db.repositories.rate_limit_repository import SqlRateLimitRepository
from mockup_studio.infrastructure.db.repositories.studio_repository import SqlStudioRepository
from mockup_studio.shared.config import Settings, get_settings
from mockup_studio.shared.logging import configure_logging


logger = logging.getLogger(__name__)


class JobConfigError(RuntimeError):
    pass


def _engine(settings: Settings):
    if not settings.postgres_dsn:
        raise JobConfigError("POSTGRES_DSN is required.")
    return get_engine(settings.postgres_dsn)


def run_credit_expiration(settings: Settings) -> int:
    engine = _engine(settings)
    report = ExpireCanceledSubscriptionsUseCase(
        accounts_port=SqlAccountsRepository(engine),
        rate_limit_port=SqlRateLimitRepository(engine),
    ).execute()
    print(f"downgraded={len(report.downgraded_user_ids)} rate_limits_deleted={report.rate_limits_deleted}")
    return 0


def run_feedback_emails(settings: Settings) -> int:
    from mockup_studio.infrastructure.clients.brevo_email_client import BrevoEmailClient

    if not settings.brevo_api_key:
        raise JobConfigError("BREVO_API_KEY is required.")
    report = SendFeedbackEmailsUseCase(
        accounts_port=SqlAccountsRepository(_engine(settings)),
        email_port=BrevoEmailClient(
            api_key=settings.brevo_api_key,
            sender_email=settings.email_sender_address,
            sender_name=settings.email_sender_name,
        ),
        feedback_url=f"{settings.app_base_url}/feedback",
    ).execute()
    print(f"sent={report.sent} failed={report.failed}")
    return 0 if report.failed == 0 else 1


def run_purge_user(settings: Settings, user_ref: str) -> int:
    storage_port = None
    if settings.storage_bucket:
        from mockup_studio.infrastructure.clients.cloud_storage_client import CloudStorageClient

        storage_port = CloudStorageClient(bucket=settings.storage_bucket)
    else:
        logger.warning("jobs: purge_user storage_skipped reason=STORAGE_BUCKET not set")

    engine = _engine(settings)
    report = PurgeUserUseCase(
        accounts_port=SqlAccountsRepository(engine),
        studio_port=SqlStudioRepository(engine),
        storage_port=storage_port,
    ).execute(user_ref=user_ref)
    print(
        f"user_id={report.user_id} content_rows={report.content_rows_deleted} "
        f"guest_sessions={report.guest_sessions_deleted} files={report.files_deleted}"
    )
    return 0


def run_init_db(settings: Settings) -> int:
    create_schema(_engine(settings))
    print("schema ready")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mockup-studio-jobs", description="Mockup Studio maintenance jobs.")
    subparsers = parser.add_subparsers(dest="job", required=True)
    subparsers.add_parser("credit-expiration", help="Downgrade expired canceling subscriptions.")
    subparsers.add_parser("feedback-emails", help="Send feedback emails to users created 24-48h ago.")
    purge = subparsers.add_parser("purge-user", help="Delete an account and everything it owns.")
    purge.add_argument("user_ref", help="User id or email.")
    subparsers.add_parser("init-db", help="Create missing tables.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        if args.job == "credit-expiration":
            return run_credit_expiration(settings)
        if args.job == "feedback-emails":
            return run_feedback_emails(settings)
        if args.job == "purge-user":
            return run_purge_user(settings, args.user_ref)
        return run_init_db(settings)
    except (JobConfigError, DomainError) as exc:
        logger.error("jobs: failed job=%s error=%s", args.job, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2


def credit_expiration_entrypoint() -> int:
    return main(["credit-expiration"])


def feedback_emails_entrypoint() -> int:
    return main(["feedback-emails"])


if __name__ == "__main__":
    sys.exit(main())
