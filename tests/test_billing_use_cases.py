from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from mockup_studio.application.dto.billing import (
    CreateCheckoutSessionInput,
    CreateTopUpSessionInput,
    StripeCheckoutCompletedEventData,
    StripeCheckoutSessionResult,
    StripeSubscriptionSnapshot,
    StripeWebhookEvent,
    StripeWebhookInput,
    SyncSubscriptionInput,
)
from mockup_studio.application.use_cases.cancel_subscription import CancelSubscriptionUseCase
from mockup_studio.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from mockup_studio.application.use_cases.create_top_up_session import CreateTopUpSessionUseCase
from mockup_studio.application.use_cases.maintenance import ExpireCanceledSubscriptionsUseCase
from mockup_studio.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from mockup_studio.application.use_cases.sync_subscription import SyncSubscriptionUseCase
from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.exceptions import BillingConfigError, BillingSignatureError, ValidationError
from mockup_studio.domain.services.plans import PlanCatalog


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
PERIOD_END = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)
CATALOG = PlanCatalog(monthly_price_id="price_m", quarterly_price_id="price_q", six_months_price_id="price_6")


def _user(user_id: str = "user-1", **overrides) -> UserAccount:
    base = UserAccount(
        id=user_id,
        email=f"{user_id}@example.com",
        display_name="Ana",
        plan="free",
        credits=5,
        stripe_customer_id=None,
        stripe_subscription_id=None,
        subscription_status=None,
        cancel_at_period_end=False,
        credits_reset_at=None,
        feedback_email_sent_at=None,
        created_at=NOW,
        updated_at=NOW,
    )
    return replace(base, **overrides)


class FakeAccountsPort:
    def __init__(self, *users: UserAccount):
        self.users = {user.id: user for user in users}
        self.processed_events: dict[str, dict] = {}
        self.transactions = 0

    def execute_in_transaction(self, fn):
        self.transactions += 1
        return fn(self)

    def get_user_by_id(self, *, user_id: str):
        return self.users.get(user_id)

    def lock_user(self, *, user_id: str):
        return self.users.get(user_id)

    def get_user_by_stripe_customer_id(self, *, stripe_customer_id: str):
        for user in self.users.values():
            if user.stripe_customer_id == stripe_customer_id:
                return user
        return None

    def update_user_stripe_customer_id(self, *, user_id: str, stripe_customer_id: str) -> None:
        self.users[user_id] = replace(self.users[user_id], stripe_customer_id=stripe_customer_id)

    def increment_credits(self, *, user_id: str, amount: int):
        user = self.users.get(user_id)
        if user is None:
            return None
        self.users[user_id] = replace(user, credits=user.credits + amount)
        return self.users[user_id].credits

    def set_plan_credits(self, *, user_id: str, plan: str, credits: int, credits_reset_at) -> None:
        self.users[user_id] = replace(
            self.users[user_id],
            plan=plan,
            credits=credits,
            credits_reset_at=credits_reset_at,
        )

    def update_subscription_state(self, *, user_id: str, subscription_id, status, cancel_at_period_end) -> None:
        user = self.users[user_id]
        self.users[user_id] = replace(
            user,
            stripe_subscription_id=subscription_id or user.stripe_subscription_id,
            subscription_status=status,
            cancel_at_period_end=cancel_at_period_end,
        )

    def downgrade_to_free(self, *, user_id: str) -> None:
        self.users[user_id] = replace(
            self.users[user_id],
            plan="free",
            stripe_subscription_id=None,
            subscription_status="canceled",
            cancel_at_period_end=False,
            credits_reset_at=None,
        )

    def list_expired_canceling_users(self, *, now):
        return [
            user
            for user in self.users.values()
            if user.subscription_status == "canceling" and user.credits_reset_at and user.credits_reset_at <= now
        ]

    def record_processed_stripe_event(self, *, event_id, event_type, user_id, user_found, processed_at) -> bool:
        if event_id in self.processed_events:
            return False
        self.processed_events[event_id] = {"type": event_type, "user_id": user_id, "user_found": user_found}
        return True


class FakeRateLimitPort:
    def delete_counters_older_than(self, *, cutoff) -> int:
        return 0


class FakeStripePort:
    def __init__(self, *, event: StripeWebhookEvent | None = None):
        self.event = event
        self.customer_user_ids: dict[str, str] = {}
        self.customers_by_email: dict[str, str] = {}
        self.subscriptions: list[StripeSubscriptionSnapshot] = []
        self.created_customers: list[str] = []
        self.checkout_calls: list[dict] = []
        self.top_up_calls: list[dict] = []
        self.canceled: list[str] = []

    def verify_webhook(self, *, signature: str, payload: bytes) -> StripeWebhookEvent:
        if signature != "valid":
            raise BillingSignatureError("Invalid Stripe webhook signature.")
        return self.event

    def get_customer_user_id(self, *, customer_id: str):
        return self.customer_user_ids.get(customer_id)

    def find_customer_id_by_email(self, *, email: str):
        return self.customers_by_email.get(email)

    def create_customer(self, *, user_id: str, email: str, name):
        customer_id = f"cus_{user_id}"
        self.created_customers.append(customer_id)
        return customer_id

    def create_checkout_session(self, **kwargs) -> StripeCheckoutSessionResult:
        self.checkout_calls.append(kwargs)
        return StripeCheckoutSessionResult(id="cs_1", url="https://checkout.stripe.com/cs_1")

    def create_top_up_session(self, **kwargs) -> StripeCheckoutSessionResult:
        self.top_up_calls.append(kwargs)
        return StripeCheckoutSessionResult(id="cs_2", url="https://checkout.stripe.com/cs_2")

    def cancel_subscription_at_period_end(self, *, subscription_id: str) -> StripeSubscriptionSnapshot:
        self.canceled.append(subscription_id)
        return _subscription(status="active", cancel_at_period_end=True, cancel_at=PERIOD_END)

    def list_subscriptions(self, *, customer_id: str):
        return list(self.subscriptions)


def _subscription(**overrides) -> StripeSubscriptionSnapshot:
    base = StripeSubscriptionSnapshot(
        subscription_id="sub_1",
        customer_id="cus_1",
        price_id="price_m",
        status="active",
        current_period_end=PERIOD_END,
        cancel_at_period_end=False,
    )
    return replace(base, **overrides)


def _subscription_event(event_id: str, event_type: str = "customer.subscription.updated", **overrides):
    return StripeWebhookEvent(
        event_id=event_id,
        event_type=event_type,
        subscription=_subscription(**overrides),
        checkout_completed=None,
    )


def _top_up_event(event_id: str, *, user_id: str | None = "user-1", customer_id: str | None = "cus_1", **metadata):
    return StripeWebhookEvent(
        event_id=event_id,
        event_type="checkout.session.completed",
        subscription=None,
        checkout_completed=StripeCheckoutCompletedEventData(
            session_id="cs_9",
            mode=metadata.pop("mode", "payment"),
            user_id=user_id,
            customer_id=customer_id,
            metadata={"type": "credit_topup", "credits": "50", **metadata},
        ),
    )


def _webhook(accounts: FakeAccountsPort, stripe_port: FakeStripePort) -> ProcessStripeWebhookUseCase:
    return ProcessStripeWebhookUseCase(accounts_port=accounts, stripe_port=stripe_port, plan_catalog=CATALOG)


def _deliver(use_case: ProcessStripeWebhookUseCase):
    return use_case.execute(StripeWebhookInput(signature="valid", payload=b"{}"))


def test_webhook_rejects_bad_signature():
    use_case = _webhook(FakeAccountsPort(_user()), FakeStripePort())

    with pytest.raises(BillingSignatureError):
        use_case.execute(StripeWebhookInput(signature="forged", payload=b"{}"))


def test_top_up_adds_credits_to_existing_balance():
    accounts = FakeAccountsPort(_user(credits=5, stripe_customer_id="cus_1"))
    use_case = _webhook(accounts, FakeStripePort(event=_top_up_event("evt_1")))

    output = _deliver(use_case)

    assert output.handled is True
    assert accounts.users["user-1"].credits == 55


def test_top_up_redelivery_is_deduplicated():
    accounts = FakeAccountsPort(_user(credits=5, stripe_customer_id="cus_1"))
    use_case = _webhook(accounts, FakeStripePort(event=_top_up_event("evt_1")))

    _deliver(use_case)
    second = _deliver(use_case)

    assert second.deduped is True
    assert accounts.users["user-1"].credits == 55


def test_top_up_with_invalid_credit_metadata_defaults_to_fifty():
    accounts = FakeAccountsPort(_user(credits=0, stripe_customer_id="cus_1"))
    use_case = _webhook(accounts, FakeStripePort(event=_top_up_event("evt_1", credits="lots")))

    _deliver(use_case)

    assert accounts.users["user-1"].credits == 50


def test_checkout_for_subscription_mode_is_not_a_top_up():
    accounts = FakeAccountsPort(_user(credits=5, stripe_customer_id="cus_1"))
    use_case = _webhook(accounts, FakeStripePort(event=_top_up_event("evt_1", mode="subscription")))

    output = _deliver(use_case)

    assert output.handled is False
    assert accounts.users["user-1"].credits == 5
    assert accounts.processed_events == {}


def test_top_up_heals_missing_customer_id_from_metadata_user():
    accounts = FakeAccountsPort(_user(credits=1))
    use_case = _webhook(accounts, FakeStripePort(event=_top_up_event("evt_1", customer_id="cus_new")))

    _deliver(use_case)

    assert accounts.users["user-1"].stripe_customer_id == "cus_new"
    assert accounts.users["user-1"].credits == 51


def test_subscription_update_sets_plan_credits_idempotently():
    accounts = FakeAccountsPort(_user(credits=7, stripe_customer_id="cus_1"))

    _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_1"))))
    _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_2"))))

    user = accounts.users["user-1"]
    assert user.credits == 50
    assert user.plan == "monthly"
    assert user.credits_reset_at == PERIOD_END
    assert user.subscription_status == "active"
    assert user.stripe_subscription_id == "sub_1"


def test_subscription_maps_quarterly_price():
    accounts = FakeAccountsPort(_user(stripe_customer_id="cus_1"))

    _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_1", price_id="price_q"))))

    assert accounts.users["user-1"].plan == "quarterly"


def test_subscription_with_unknown_price_does_not_mutate_account():
    accounts = FakeAccountsPort(_user(credits=7, stripe_customer_id="cus_1"))

    output = _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_1", price_id="price_x"))))

    assert output.handled is False
    assert accounts.users["user-1"].credits == 7
    assert accounts.users["user-1"].plan == "free"


def test_inactive_subscription_update_only_mirrors_status():
    accounts = FakeAccountsPort(_user(credits=7, stripe_customer_id="cus_1"))

    _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_1", status="past_due"))))

    assert accounts.users["user-1"].credits == 7
    assert accounts.users["user-1"].subscription_status == "past_due"


def test_subscription_resolves_user_through_customer_metadata_on_stripe():
    accounts = FakeAccountsPort(_user(credits=0))
    stripe_port = FakeStripePort(event=_subscription_event("evt_1", customer_id="cus_9"))
    stripe_port.customer_user_ids["cus_9"] = "user-1"

    output = _deliver(_webhook(accounts, stripe_port))

    assert output.handled is True
    assert accounts.users["user-1"].stripe_customer_id == "cus_9"
    assert accounts.users["user-1"].credits == 50


def test_subscription_for_unknown_customer_is_recorded_without_mutation():
    accounts = FakeAccountsPort(_user(credits=3))

    output = _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_1", customer_id="cus_x"))))

    assert output.handled is False
    assert accounts.users["user-1"].credits == 3
    assert accounts.processed_events["evt_1"]["user_found"] is False


def test_subscription_deleted_downgrades_and_keeps_balance():
    accounts = FakeAccountsPort(
        _user(
            credits=42,
            plan="monthly",
            stripe_customer_id="cus_1",
            stripe_subscription_id="sub_1",
            subscription_status="active",
        )
    )

    output = _deliver(
        _webhook(accounts, FakeStripePort(event=_subscription_event("evt_1", "customer.subscription.deleted")))
    )

    user = accounts.users["user-1"]
    assert output.handled is True
    assert user.plan == "free"
    assert user.credits == 42
    assert user.stripe_subscription_id is None


def test_unrelated_event_is_acknowledged_but_not_handled():
    event = StripeWebhookEvent(event_id="evt_1", event_type="invoice.paid", subscription=None, checkout_completed=None)

    output = _deliver(_webhook(FakeAccountsPort(_user()), FakeStripePort(event=event)))

    assert output.event_type == "invoice.paid"
    assert output.handled is False


def test_checkout_session_rejects_unknown_plan():
    use_case = CreateCheckoutSessionUseCase(
        accounts_port=FakeAccountsPort(_user()),
        stripe_port=FakeStripePort(),
        plan_catalog=CATALOG,
    )

    with pytest.raises(ValidationError, match="Invalid plan selected"):
        use_case.execute(
            CreateCheckoutSessionInput(user_id="user-1", plan="weekly", success_url="https://a", cancel_url="https://b")
        )


def test_checkout_session_reports_missing_price_configuration():
    use_case = CreateCheckoutSessionUseCase(
        accounts_port=FakeAccountsPort(_user()),
        stripe_port=FakeStripePort(),
        plan_catalog=PlanCatalog(monthly_price_id="price_m", quarterly_price_id="", six_months_price_id=""),
    )

    with pytest.raises(BillingConfigError) as exc_info:
        use_case.execute(
            CreateCheckoutSessionInput(
                user_id="user-1",
                plan="quarterly",
                success_url="https://a",
                cancel_url="https://b",
            )
        )

    assert "STRIPE_PRICE_QUARTERLY_ID" in exc_info.value.missing_env_vars


def test_checkout_session_creates_customer_and_appends_session_placeholder():
    accounts = FakeAccountsPort(_user())
    stripe_port = FakeStripePort()
    use_case = CreateCheckoutSessionUseCase(accounts_port=accounts, stripe_port=stripe_port, plan_catalog=CATALOG)

    output = use_case.execute(
        CreateCheckoutSessionInput(
            user_id="user-1",
            plan="sixMonths",
            success_url="https://situ.app/studio",
            cancel_url="https://situ.app/pricing",
        )
    )

    assert output.session_id == "cs_1"
    assert accounts.users["user-1"].stripe_customer_id == "cus_user-1"
    call = stripe_port.checkout_calls[0]
    assert call["price_id"] == "price_6"
    assert call["success_url"] == "https://situ.app/studio?session_id={CHECKOUT_SESSION_ID}"
    assert call["customer_id"] == "cus_user-1"


def test_top_up_session_uses_configured_credits_and_marks_success_url():
    stripe_port = FakeStripePort()
    use_case = CreateTopUpSessionUseCase(
        accounts_port=FakeAccountsPort(_user(stripe_customer_id="cus_1")),
        stripe_port=stripe_port,
        top_up_price_id=None,
    )

    output = use_case.execute(
        CreateTopUpSessionInput(user_id="user-1", success_url="https://situ.app/studio?x=1", cancel_url="https://c")
    )

    assert output.url == "https://checkout.stripe.com/cs_2"
    call = stripe_port.top_up_calls[0]
    assert call["credits"] == 50
    assert call["price_id"] is None
    assert call["unit_amount_cents"] == 1200
    assert call["success_url"] == "https://situ.app/studio?x=1&topup=success"


def test_top_up_session_requires_redirect_urls():
    use_case = CreateTopUpSessionUseCase(
        accounts_port=FakeAccountsPort(_user()),
        stripe_port=FakeStripePort(),
        top_up_price_id="price_t",
    )

    with pytest.raises(BillingConfigError):
        use_case.execute(CreateTopUpSessionInput(user_id="user-1", success_url="", cancel_url=""))


def test_cancel_subscription_requires_subscription():
    use_case = CancelSubscriptionUseCase(accounts_port=FakeAccountsPort(_user()), stripe_port=FakeStripePort())

    with pytest.raises(ValidationError, match="No active subscription found"):
        use_case.execute(user_id="user-1")


def test_cancel_subscription_marks_account_canceling():
    accounts = FakeAccountsPort(_user(stripe_subscription_id="sub_1", subscription_status="active"))
    stripe_port = FakeStripePort()

    output = CancelSubscriptionUseCase(accounts_port=accounts, stripe_port=stripe_port).execute(user_id="user-1")

    assert stripe_port.canceled == ["sub_1"]
    assert output.cancel_at == PERIOD_END
    assert accounts.users["user-1"].subscription_status == "canceling"
    assert accounts.users["user-1"].cancel_at_period_end is True


def test_sync_subscription_finds_customer_by_email_and_grants_plan_credits():
    accounts = FakeAccountsPort(_user(credits=2))
    stripe_port = FakeStripePort()
    stripe_port.customers_by_email["user-1@example.com"] = "cus_1"
    stripe_port.subscriptions = [_subscription(status="canceled"), _subscription(price_id="price_q")]

    output = SyncSubscriptionUseCase(
        accounts_port=accounts,
        stripe_port=stripe_port,
        plan_catalog=CATALOG,
    ).execute(SyncSubscriptionInput(user_id="user-1", email="user-1@example.com"))

    assert output.plan == "quarterly"
    assert output.credits == 50
    assert accounts.users["user-1"].stripe_customer_id == "cus_1"
    assert accounts.users["user-1"].credits == 50


def test_sync_subscription_without_customer_reports_free_plan():
    output = SyncSubscriptionUseCase(
        accounts_port=FakeAccountsPort(_user()),
        stripe_port=FakeStripePort(),
        plan_catalog=CATALOG,
    ).execute(SyncSubscriptionInput(user_id="user-1", email="user-1@example.com"))

    assert output.plan == "free"
    assert output.credits is None


def _subscriber(**overrides) -> UserAccount:
    fields = {
        "credits": 3,
        "plan": "monthly",
        "stripe_customer_id": "cus_1",
        "stripe_subscription_id": "sub_1",
        "subscription_status": "active",
        "credits_reset_at": PERIOD_END,
    }
    fields.update(overrides)
    return _user(**fields)


def test_cancel_followed_by_stripe_update_keeps_canceling_until_period_end():
    accounts = FakeAccountsPort(_subscriber())
    CancelSubscriptionUseCase(accounts_port=accounts, stripe_port=FakeStripePort()).execute(user_id="user-1")

    output = _deliver(
        _webhook(
            accounts,
            FakeStripePort(event=_subscription_event("evt_1", cancel_at_period_end=True, cancel_at=PERIOD_END)),
        )
    )

    user = accounts.users["user-1"]
    assert output.handled is True
    assert user.credits == 3
    assert user.subscription_status == "canceling"
    assert user.cancel_at_period_end is True

    report = ExpireCanceledSubscriptionsUseCase(
        accounts_port=accounts,
        rate_limit_port=FakeRateLimitPort(),
    ).execute(now=PERIOD_END)

    assert report.downgraded_user_ids == ["user-1"]
    assert accounts.users["user-1"].plan == "free"
    assert accounts.users["user-1"].credits == 3


def test_subscription_renewal_resets_credits_for_new_period():
    accounts = FakeAccountsPort(_subscriber())
    next_period_end = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_1", current_period_end=next_period_end))))

    user = accounts.users["user-1"]
    assert user.credits == 50
    assert user.credits_reset_at == next_period_end
    assert user.subscription_status == "active"


def test_subscription_reactivation_restores_active_status_without_refill():
    accounts = FakeAccountsPort(_subscriber(subscription_status="canceling", cancel_at_period_end=True))

    _deliver(_webhook(accounts, FakeStripePort(event=_subscription_event("evt_1"))))

    user = accounts.users["user-1"]
    assert user.credits == 3
    assert user.subscription_status == "active"
    assert user.cancel_at_period_end is False


def test_sync_subscription_with_unknown_price_leaves_account_unchanged():
    accounts = FakeAccountsPort(_user(credits=2, stripe_customer_id="cus_1"))
    stripe_port = FakeStripePort()
    stripe_port.subscriptions = [_subscription(price_id="price_x")]

    output = SyncSubscriptionUseCase(
        accounts_port=accounts,
        stripe_port=stripe_port,
        plan_catalog=CATALOG,
    ).execute(SyncSubscriptionInput(user_id="user-1", email="user-1@example.com"))

    user = accounts.users["user-1"]
    assert output.plan == "free"
    assert output.credits is None
    assert user.credits == 2
    assert user.plan == "free"
    assert user.stripe_subscription_id is None
    assert accounts.transactions == 0


def test_repeated_sync_does_not_refill_current_period():
    accounts = FakeAccountsPort(_subscriber(credits=4))
    stripe_port = FakeStripePort()
    stripe_port.subscriptions = [_subscription(cancel_at_period_end=True)]

    output = SyncSubscriptionUseCase(
        accounts_port=accounts,
        stripe_port=stripe_port,
        plan_catalog=CATALOG,
    ).execute(SyncSubscriptionInput(user_id="user-1", email="user-1@example.com"))

    assert output.credits == 4
    assert accounts.users["user-1"].credits == 4
    assert accounts.users["user-1"].subscription_status == "canceling"
