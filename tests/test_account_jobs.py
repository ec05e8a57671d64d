from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from mockup_studio.application.dto.identity import VerifiedIdentity
from mockup_studio.application.use_cases.ensure_account import EnsureAccountUseCase
from mockup_studio.application.use_cases.maintenance import (
    ExpireCanceledSubscriptionsUseCase,
    PurgeUserUseCase,
    SendFeedbackEmailsUseCase,
)
from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.exceptions import EmailDeliveryError, UserNotFoundError


NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def _user(user_id: str = "user-1", **changes) -> UserAccount:
    user = UserAccount(
        id=user_id,
        email=f"{user_id}@example.com",
        display_name="Ana",
        plan="free",
        credits=12,
        stripe_customer_id=None,
        stripe_subscription_id=None,
        subscription_status=None,
        cancel_at_period_end=False,
        credits_reset_at=None,
        feedback_email_sent_at=None,
        created_at=NOW,
        updated_at=NOW,
    )
    return replace(user, **changes)


class FakeAccountsPort:
    def __init__(self, *users: UserAccount):
        self.users = {user.id: user for user in users}
        self.create_returns_none = False

    def get_user_by_id(self, *, user_id):
        return self.users.get(user_id)

    def get_user_by_email(self, *, email):
        return next((user for user in self.users.values() if user.email == email.lower()), None)

    def create_user(self, *, user_id, email, display_name, credits, now):
        if self.create_returns_none:
            self.users[user_id] = _user(user_id, email=email, credits=credits)
            return None
        user = _user(user_id, email=email, display_name=display_name, credits=credits, created_at=now)
        self.users[user_id] = user
        return user

    def list_expired_canceling_users(self, *, now):
        return [
            user
            for user in self.users.values()
            if user.subscription_status == "canceling" and user.credits_reset_at and user.credits_reset_at <= now
        ]

    def downgrade_to_free(self, *, user_id):
        user = self.users[user_id]
        self.users[user_id] = replace(
            user,
            plan="free",
            stripe_subscription_id=None,
            subscription_status="canceled",
            cancel_at_period_end=False,
            credits_reset_at=None,
        )

    def list_users_pending_feedback_email(self, *, created_from, created_to):
        return [
            user
            for user in self.users.values()
            if user.feedback_email_sent_at is None and created_from <= user.created_at <= created_to
        ]

    def mark_feedback_email_sent(self, *, user_id, sent_at):
        self.users[user_id] = replace(self.users[user_id], feedback_email_sent_at=sent_at)

    def delete_user(self, *, user_id):
        return self.users.pop(user_id, None) is not None


class FakeRateLimitPort:
    def __init__(self):
        self.cutoffs: list[datetime] = []

    def delete_counters_older_than(self, *, cutoff):
        self.cutoffs.append(cutoff)
        return 3


class FakeStudioPort:
    def __init__(self):
        self.deleted_content: list[str] = []
        self.deleted_sessions: list[str] = []

    def execute_in_transaction(self, fn):
        return fn(self)

    def delete_user_content(self, *, user_id):
        self.deleted_content.append(user_id)
        return 5

    def delete_guest_sessions_by_email(self, *, email):
        self.deleted_sessions.append(email)
        return 1


class FakeStoragePort:
    def __init__(self):
        self.prefixes: list[str] = []

    def delete_prefix(self, *, prefix):
        self.prefixes.append(prefix)
        return 7


class FakeEmailPort:
    def __init__(self, *, failing: set[str] | None = None):
        self.failing = failing or set()
        self.sent: list[tuple[str, str]] = []

    def send_email(self, *, to_email, subject, html_content):
        if to_email in self.failing:
            raise EmailDeliveryError("Brevo rejected the message")
        self.sent.append((to_email, subject))


def _identity(uid: str = "user-1") -> VerifiedIdentity:
    return VerifiedIdentity(uid=uid, email="New@Example.com", name="Ana", email_verified=True)


def test_ensure_account_creates_with_signup_bonus_and_welcome_email():
    accounts = FakeAccountsPort()
    email = FakeEmailPort()
    use_case = EnsureAccountUseCase(
        accounts_port=accounts,
        email_port=email,
        signup_bonus_credits=12,
        studio_url="https://situ.app/studio",
    )

    output = use_case.execute(_identity())

    assert output.created is True
    assert output.account.credits == 12
    assert output.account.email == "new@example.com"
    assert email.sent == [("new@example.com", "Welcome to Situ")]


def test_ensure_account_returns_existing_without_email():
    accounts = FakeAccountsPort(_user(credits=3))
    email = FakeEmailPort()
    use_case = EnsureAccountUseCase(
        accounts_port=accounts,
        email_port=email,
        signup_bonus_credits=12,
        studio_url="https://situ.app/studio",
    )

    output = use_case.execute(_identity())

    assert output.created is False
    assert output.account.credits == 3
    assert email.sent == []


def test_ensure_account_concurrent_create_reads_winner():
    accounts = FakeAccountsPort()
    accounts.create_returns_none = True
    use_case = EnsureAccountUseCase(
        accounts_port=accounts,
        email_port=None,
        signup_bonus_credits=12,
        studio_url="https://situ.app/studio",
    )

    output = use_case.execute(_identity())

    assert output.created is False
    assert output.account.id == "user-1"


def test_ensure_account_welcome_failure_is_not_fatal():
    email = FakeEmailPort(failing={"new@example.com"})
    use_case = EnsureAccountUseCase(
        accounts_port=FakeAccountsPort(),
        email_port=email,
        signup_bonus_credits=12,
        studio_url="https://situ.app/studio",
    )

    assert use_case.execute(_identity()).created is True


def test_expire_canceled_subscriptions_downgrades_only_due_users():
    due = _user("due", subscription_status="canceling", credits_reset_at=NOW - timedelta(minutes=1), credits=40)
    later = _user("later", subscription_status="canceling", credits_reset_at=NOW + timedelta(days=3))
    active = _user("active", subscription_status="active", credits_reset_at=NOW - timedelta(days=1))
    accounts = FakeAccountsPort(due, later, active)
    rate_limits = FakeRateLimitPort()

    report = ExpireCanceledSubscriptionsUseCase(accounts_port=accounts, rate_limit_port=rate_limits).execute(now=NOW)

    assert report.downgraded_user_ids == ["due"]
    assert report.rate_limits_deleted == 3
    assert accounts.users["due"].plan == "free"
    assert accounts.users["due"].subscription_status == "canceled"
    assert accounts.users["due"].credits == 40
    assert accounts.users["later"].subscription_status == "canceling"
    assert rate_limits.cutoffs == [NOW - timedelta(days=7)]


def test_feedback_emails_sent_once_and_failures_counted():
    window_user = _user("window", created_at=NOW - timedelta(hours=30))
    failing_user = _user("failing", created_at=NOW - timedelta(hours=36))
    too_new = _user("new", created_at=NOW - timedelta(hours=2))
    accounts = FakeAccountsPort(window_user, failing_user, too_new)
    email = FakeEmailPort(failing={"failing@example.com"})
    use_case = SendFeedbackEmailsUseCase(
        accounts_port=accounts,
        email_port=email,
        feedback_url="https://situ.app/feedback",
    )

    report = use_case.execute(now=NOW)
    second = use_case.execute(now=NOW)

    assert (report.sent, report.failed) == (1, 1)
    assert (second.sent, second.failed) == (0, 1)
    assert accounts.users["window"].feedback_email_sent_at == NOW
    assert accounts.users["failing"].feedback_email_sent_at is None


def test_purge_user_by_email_removes_everything():
    accounts = FakeAccountsPort(_user("user-1"))
    studio = FakeStudioPort()
    storage = FakeStoragePort()

    report = PurgeUserUseCase(accounts_port=accounts, studio_port=studio, storage_port=storage).execute(
        user_ref="user-1@example.com"
    )

    assert report.user_id == "user-1"
    assert (report.content_rows_deleted, report.guest_sessions_deleted, report.files_deleted) == (5, 1, 7)
    assert storage.prefixes == ["users/user-1/"]
    assert "user-1" not in accounts.users


def test_purge_unknown_user():
    use_case = PurgeUserUseCase(accounts_port=FakeAccountsPort(), studio_port=FakeStudioPort(), storage_port=None)

    with pytest.raises(UserNotFoundError):
        use_case.execute(user_ref="ghost")
