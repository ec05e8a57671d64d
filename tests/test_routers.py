from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from mockup_studio.api.deps import (
    _get_stripe_client,
    _get_webhook_stripe_client,
    get_claim_guest_session_use_case,
    get_credit_ledger,
    get_current_account,
    get_current_identity,
    get_edit_mockup_use_case,
    get_generate_guest_mockups_use_case,
    get_generate_member_mockups_use_case,
    get_process_stripe_webhook_use_case,
    get_send_guest_mockups_use_case,
    require_admin,
)
from mockup_studio.application.dto.billing import StripeWebhookOutput
from mockup_studio.application.dto.guest import GenerateGuestMockupsOutput, SendGuestMockupsOutput
from mockup_studio.application.dto.identity import VerifiedIdentity
from mockup_studio.application.dto.member import EditMockupOutput
from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.entities.guest_session import GuestError, GuestResult
from mockup_studio.domain.entities.studio import Mockup
from mockup_studio.domain.exceptions import (
    AllGenerationsFailedError,
    AlreadyClaimedError,
    BillingSignatureError,
    InsufficientCreditsError,
    RateLimitedError,
)
from mockup_studio.infrastructure.clients.stripe_client import StripeClient
from mockup_studio.main import app


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

client = TestClient(app)


def _account() -> UserAccount:
    return UserAccount(
        id="user-1",
        email="member@example.com",
        display_name=None,
        plan="free",
        credits=0,
        stripe_customer_id=None,
        stripe_subscription_id=None,
        subscription_status=None,
        cancel_at_period_end=False,
        credits_reset_at=None,
        feedback_email_sent_at=None,
        created_at=NOW,
        updated_at=NOW,
    )


class FakeGuestGenerationUseCase:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.commands = []

    def execute(self, command):
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return GenerateGuestMockupsOutput(
            session_id="s1",
            results=[GuestResult(category="wall", url="https://cdn/wall.png")],
            errors=[GuestError(category="phone", message="boom")],
        )


class RaisingUseCase:
    def __init__(self, error: Exception):
        self.error = error

    def execute(self, command):
        raise self.error


class FakeWebhookUseCase:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.inputs = []

    def execute(self, command):
        self.inputs.append(command)
        if self.error is not None:
            raise self.error
        return StripeWebhookOutput(event_type="checkout.session.completed", handled=True)


def test_health_is_served_with_and_without_api_prefix():
    for path in ("/health", "/api/health"):
        response = client.get(path)
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["service"] == "mockup-studio-api"


def test_generate_guest_mockups_returns_camel_case_payload():
    fake = FakeGuestGenerationUseCase()
    app.dependency_overrides[get_generate_guest_mockups_use_case] = lambda: fake

    response = client.post(
        "/api/generateGuestMockups",
        json={"artworkUrl": "https://cdn/art.png"},
        headers={"X-AppEngine-User-IP": "203.0.113.9"},
    )
    app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "sessionId": "s1",
        "results": [{"category": "wall", "url": "https://cdn/wall.png"}],
        "errors": [{"category": "phone", "message": "boom"}],
    }
    assert fake.commands[0].fingerprint == "203.0.113.9"
    assert fake.commands[0].artwork_url == "https://cdn/art.png"


def test_generate_guest_mockups_rate_limited():
    fake = FakeGuestGenerationUseCase(error=RateLimitedError("Too many requests"))
    app.dependency_overrides[get_generate_guest_mockups_use_case] = lambda: fake

    response = client.post("/generateGuestMockups", json={"artworkUrl": "https://cdn/art.png"})
    app.dependency_overrides.clear()

    assert response.status_code == 429
    assert response.json() == {"ok": False, "error": "Too many requests"}


def test_generate_guest_mockups_all_failed_lists_errors():
    error = AllGenerationsFailedError(
        "All generations failed.",
        errors=[GuestError(category="wall", message="refused")],
    )
    app.dependency_overrides[get_generate_guest_mockups_use_case] = lambda: FakeGuestGenerationUseCase(error=error)

    response = client.post("/generateGuestMockups", json={"artworkUrl": "https://cdn/art.png"})
    app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {
        "ok": False,
        "error": "All generations failed.",
        "errors": [{"category": "wall", "message": "refused"}],
    }


def test_send_guest_mockups_uses_ip_from_peer_when_no_trusted_header():
    captured = []

    class _FakeSend:
        def execute(self, command):
            captured.append(command)
            return SendGuestMockupsOutput(session_id=command.session_id, email="guest@example.com", sent_count=3)

    app.dependency_overrides[get_send_guest_mockups_use_case] = lambda: _FakeSend()

    response = client.post("/sendGuestMockups", json={"sessionId": "s1", "email": "guest@example.com"})
    app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["message"] == "Sent 3 mockups to guest@example.com"
    assert captured[0].fingerprint == "testclient"


def test_member_endpoints_require_bearer_token():
    response = client.post("/generateMemberMockups", json={"product": "wall"})

    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "Unauthorized"}


def test_generate_member_mockups_insufficient_credits():
    app.dependency_overrides[get_current_account] = _account
    app.dependency_overrides[get_generate_member_mockups_use_case] = lambda: RaisingUseCase(
        InsufficientCreditsError("Insufficient credits")
    )

    response = client.post("/generateMemberMockups", json={"product": "wall", "artworkId": "art-1"})
    app.dependency_overrides.clear()

    assert response.status_code == 403
    assert response.json() == {"ok": False, "error": "Insufficient credits"}


def test_claim_guest_session_twice_is_bad_request():
    app.dependency_overrides[get_current_account] = _account
    app.dependency_overrides[get_claim_guest_session_use_case] = lambda: RaisingUseCase(
        AlreadyClaimedError("Session already claimed")
    )

    response = client.post("/claimGuestSession", json={"sessionId": "s1"})
    app.dependency_overrides.clear()

    assert response.status_code == 400
    assert response.json()["error"] == "Session already claimed"


def test_stripe_webhook_requires_signature_header():
    fake = FakeWebhookUseCase()
    app.dependency_overrides[get_process_stripe_webhook_use_case] = lambda: fake

    response = client.post("/stripeWebhook", content=b"{}")
    app.dependency_overrides.clear()

    assert response.status_code == 400
    assert response.json()["ok"] is False
    assert fake.inputs == []


def test_stripe_webhook_passes_raw_body():
    fake = FakeWebhookUseCase()
    app.dependency_overrides[get_process_stripe_webhook_use_case] = lambda: fake

    response = client.post("/stripeWebhook", content=b'{"id": "evt_1"}', headers={"Stripe-Signature": "t=1,v1=x"})
    app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == {
        "received": True,
        "eventType": "checkout.session.completed",
        "handled": True,
        "deduped": False,
    }
    assert fake.inputs[0].payload == b'{"id": "evt_1"}'
    assert fake.inputs[0].signature == "t=1,v1=x"


def test_stripe_webhook_bad_signature_is_rejected():
    fake = FakeWebhookUseCase(error=BillingSignatureError("Webhook signature verification failed."))
    app.dependency_overrides[get_process_stripe_webhook_use_case] = lambda: fake

    response = client.post("/stripeWebhook", content=b"{}", headers={"Stripe-Signature": "bad"})
    app.dependency_overrides.clear()

    assert response.status_code == 400


def test_stripe_webhook_processing_failure_is_acknowledged():
    fake = FakeWebhookUseCase(error=RuntimeError("database down"))
    app.dependency_overrides[get_process_stripe_webhook_use_case] = lambda: fake

    response = client.post("/stripeWebhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
    app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["handled"] is False


def test_admin_credit_adjustment_forbidden_for_non_admin():
    app.dependency_overrides[get_current_identity] = lambda: VerifiedIdentity(
        uid="user-1",
        email="member@example.com",
        name=None,
        email_verified=True,
    )
    app.dependency_overrides[get_credit_ledger] = lambda: None

    response = client.post("/admin/users/user-2/credits", json={"delta": 10, "reason": "refund"})
    app.dependency_overrides.clear()

    assert response.status_code == 403
    assert response.json() == {"ok": False, "error": "Forbidden"}


def test_invalid_body_returns_error_envelope():
    app.dependency_overrides[get_credit_ledger] = lambda: None
    app.dependency_overrides[require_admin] = lambda: VerifiedIdentity(
        uid="admin",
        email="admin@example.com",
        name=None,
        email_verified=True,
    )

    response = client.post("/admin/users/user-2/credits", json={"delta": "lots"})
    app.dependency_overrides.clear()

    assert response.status_code == 400
    body = response.json()
    assert body["ok"] is False
    assert body["errors"][0]["field"] == "delta"


class FakeEditUseCase:
    def __init__(self):
        self.commands = []

    def execute(self, command):
        self.commands.append(command)
        return EditMockupOutput(
            mockup=Mockup(
                id=command.mockup_id,
                user_id=command.user_id,
                artwork_id=None,
                category="phone",
                url="https://cdn/edit.png",
                variation=1,
                aspect_ratio="1:1",
                custom_prompt=command.prompt,
                imported_from_guest=False,
                created_at=NOW,
            ),
            remaining_credits=4,
        )


def test_edit_mockup_accepts_edit_prompt_and_prompt_fields():
    fake = FakeEditUseCase()
    app.dependency_overrides[get_current_account] = _account
    app.dependency_overrides[get_edit_mockup_use_case] = lambda: fake

    first = client.post("/editMockup", json={"mockupId": "m-1", "editPrompt": "make it blue"})
    second = client.post("/editMockup", json={"mockupId": "m-1", "prompt": "make it red"})
    app.dependency_overrides.clear()

    assert first.status_code == 200
    assert first.json()["mockup"]["customPrompt"] == "make it blue"
    assert first.json()["remainingCredits"] == 4
    assert second.status_code == 200
    assert [command.prompt for command in fake.commands] == ["make it blue", "make it red"]


def test_webhook_secret_is_only_required_for_webhook_client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "")
    _get_stripe_client.cache_clear()
    try:
        assert isinstance(_get_stripe_client(), StripeClient)
        with pytest.raises(HTTPException) as exc_info:
            _get_webhook_stripe_client()
    finally:
        _get_stripe_client.cache_clear()

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "STRIPE_WEBHOOK_SECRET is required."
