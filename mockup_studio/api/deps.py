from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request

from mockup_studio.application.dto.identity import VerifiedIdentity
from mockup_studio.application.use_cases.cancel_subscription import CancelSubscriptionUseCase
from mockup_studio.application.use_cases.claim_guest_session import ClaimGuestSessionUseCase
from mockup_studio.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from mockup_studio.application.use_cases.create_top_up_session import CreateTopUpSessionUseCase
from mockup_studio.application.use_cases.credit_ledger import CreditLedger
from mockup_studio.application.use_cases.edit_mockup import EditMockupUseCase
from mockup_studio.application.use_cases.ensure_account import EnsureAccountUseCase
from mockup_studio.application.use_cases.generate_guest_mockups import GenerateGuestMockupsUseCase
from mockup_studio.application.use_cases.generate_member_mockups import GenerateMemberMockupsUseCase
from mockup_studio.application.use_cases.guest_sessions import GuestSessionManager
from mockup_studio.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from mockup_studio.application.use_cases.rate_limiter import RateLimiter
from mockup_studio.application.use_cases.send_guest_mockups import SendGuestMockupsUseCase
from mockup_studio.application.use_cases.sync_subscription import SyncSubscriptionUseCase
from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.exceptions import UnauthorizedError
from mockup_studio.domain.services.fingerprint import sanitize_fingerprint
from mockup_studio.domain.services.image_url_policy import ImageUrlPolicy
from mockup_studio.domain.services.plans import PlanCatalog
from mockup_studio.infrastructure.db.engine import get_engine
from mockup_studio.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from mockup_studio.infrastructure.db.repositories.rate_limit_repository import SqlRateLimitRepository
from mockup_studio.infrastructure.db.repositories.studio_repository import SqlStudioRepository
from mockup_studio.shared.config import get_settings


# Only headers set by the hosting edge are trusted; X-Forwarded-For is client-controlled.
TRUSTED_CLIENT_IP_HEADERS = ("X-AppEngine-User-IP", "Fastly-Client-IP")


def _get_db_engine():
    settings = get_settings()
    if not settings.postgres_dsn:
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")
    return get_engine(settings.postgres_dsn)


def _get_accounts_repository() -> SqlAccountsRepository:
    return SqlAccountsRepository(_get_db_engine())


def _get_studio_repository() -> SqlStudioRepository:
    return SqlStudioRepository(_get_db_engine())


def _get_rate_limit_repository() -> SqlRateLimitRepository:
    return SqlRateLimitRepository(_get_db_engine())


@lru_cache(maxsize=1)
def _get_identity_client() -> "FirebaseIdentityClient":
    from mockup_studio.infrastructure.clients.firebase_identity_client import FirebaseIdentityClient

    settings = get_settings()
    if not settings.firebase_project_id:
        raise HTTPException(status_code=500, detail="FIREBASE_PROJECT_ID is required.")
    return FirebaseIdentityClient(project_id=settings.firebase_project_id)


@lru_cache(maxsize=1)
def _get_image_generation_client() -> "GeminiImageClient":
    from mockup_studio.infrastructure.clients.gemini_image_client import (
        GeminiImageClient,
        GeminiImageClientSettings,
    )

    settings = get_settings()
    if not settings.genai_api_key:
        raise HTTPException(status_code=500, detail="GENAI_API_KEY is required.")
    return GeminiImageClient(
        GeminiImageClientSettings(
            api_key=settings.genai_api_key,
            model=settings.genai_model,
            api_base=settings.genai_api_base,
            timeout_seconds=settings.genai_timeout_seconds,
            max_retries=settings.genai_max_retries,
        )
    )


@lru_cache(maxsize=1)
def _get_storage_client() -> "CloudStorageClient":
    from mockup_studio.infrastructure.clients.cloud_storage_client import CloudStorageClient

    settings = get_settings()
    if not settings.storage_bucket:
        raise HTTPException(status_code=500, detail="STORAGE_BUCKET is required.")
    return CloudStorageClient(bucket=settings.storage_bucket)


@lru_cache(maxsize=1)
def _get_email_client() -> "BrevoEmailClient":
    from mockup_studio.infrastructure.clients.brevo_email_client import BrevoEmailClient

    settings = get_settings()
    return BrevoEmailClient(
        api_key=settings.brevo_api_key,
        sender_email=settings.email_sender_address,
        sender_name=settings.email_sender_name,
    )


def _get_required_email_client() -> "BrevoEmailClient":
    if not get_settings().brevo_api_key:
        raise HTTPException(status_code=500, detail="BREVO_API_KEY is required.")
    return _get_email_client()


@lru_cache(maxsize=1)
def _get_stripe_client() -> "StripeClient":
    from mockup_studio.infrastructure.clients.stripe_client import StripeClient

    settings = get_settings()
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY is required.")
    return StripeClient(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
    )


def _get_webhook_stripe_client() -> "StripeClient":
    if not get_settings().stripe_webhook_secret:
        raise HTTPException(status_code=500, detail="STRIPE_WEBHOOK_SECRET is required.")
    return _get_stripe_client()


def _get_url_policy() -> ImageUrlPolicy:
    settings = get_settings()
    return ImageUrlPolicy(bucket=settings.storage_bucket, extra_hosts=settings.allowed_image_hosts)


def _get_plan_catalog() -> PlanCatalog:
    settings = get_settings()
    return PlanCatalog(
        monthly_price_id=settings.stripe_price_monthly_id,
        quarterly_price_id=settings.stripe_price_quarterly_id,
        six_months_price_id=settings.stripe_price_six_months_id,
    )


def _get_credit_ledger() -> CreditLedger:
    return CreditLedger(accounts_port=_get_accounts_repository())


def _get_guest_session_manager() -> GuestSessionManager:
    return GuestSessionManager(studio_port=_get_studio_repository())


def _get_rate_limiter() -> RateLimiter:
    return RateLimiter(rate_limit_port=_get_rate_limit_repository())


def get_client_fingerprint(request: Request) -> str:
    for header in TRUSTED_CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            return sanitize_fingerprint(value)
    peer = request.client.host if request.client else None
    return sanitize_fingerprint(peer)


def get_current_identity(
    authorization: str | None = Header(None),
) -> VerifiedIdentity:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        return _get_identity_client().verify_token(token=token)
    except UnauthorizedError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


def get_ensure_account_use_case() -> EnsureAccountUseCase:
    settings = get_settings()
    return EnsureAccountUseCase(
        accounts_port=_get_accounts_repository(),
        email_port=_get_email_client() if settings.brevo_api_key else None,
        signup_bonus_credits=settings.signup_bonus_credits,
        studio_url=f"{settings.app_base_url}/studio",
    )


def get_current_account(
    identity: VerifiedIdentity = Depends(get_current_identity),
    use_case: EnsureAccountUseCase = Depends(get_ensure_account_use_case),
) -> UserAccount:
    return use_case.execute(identity).account


def require_admin(
    identity: VerifiedIdentity = Depends(get_current_identity),
) -> VerifiedIdentity:
    admin_emails = get_settings().admin_emails
    email = (identity.email or "").strip().lower()
    if not email or not identity.email_verified or email not in admin_emails:
        raise HTTPException(status_code=403, detail="Forbidden")
    return identity


def get_generate_guest_mockups_use_case() -> GenerateGuestMockupsUseCase:
    settings = get_settings()
    return GenerateGuestMockupsUseCase(
        session_manager=_get_guest_session_manager(),
        rate_limiter=_get_rate_limiter(),
        image_generation_port=_get_image_generation_client(),
        storage_port=_get_storage_client(),
        url_policy=_get_url_policy(),
        daily_limit=settings.guest_generation_daily_limit,
    )


def get_send_guest_mockups_use_case() -> SendGuestMockupsUseCase:
    settings = get_settings()
    return SendGuestMockupsUseCase(
        session_manager=_get_guest_session_manager(),
        rate_limiter=_get_rate_limiter(),
        email_port=_get_required_email_client(),
        signup_url=f"{settings.app_base_url}/signup",
        daily_limit=settings.guest_email_daily_limit,
    )


def get_claim_guest_session_use_case() -> ClaimGuestSessionUseCase:
    return ClaimGuestSessionUseCase(session_manager=_get_guest_session_manager())


def get_generate_member_mockups_use_case() -> GenerateMemberMockupsUseCase:
    return GenerateMemberMockupsUseCase(
        credit_ledger=_get_credit_ledger(),
        studio_port=_get_studio_repository(),
        image_generation_port=_get_image_generation_client(),
        storage_port=_get_storage_client(),
        url_policy=_get_url_policy(),
    )


def get_edit_mockup_use_case() -> EditMockupUseCase:
    return EditMockupUseCase(
        credit_ledger=_get_credit_ledger(),
        studio_port=_get_studio_repository(),
        image_generation_port=_get_image_generation_client(),
        storage_port=_get_storage_client(),
        url_policy=_get_url_policy(),
    )


def get_credit_ledger() -> CreditLedger:
    return _get_credit_ledger()


def get_create_checkout_session_use_case() -> CreateCheckoutSessionUseCase:
    return CreateCheckoutSessionUseCase(
        accounts_port=_get_accounts_repository(),
        stripe_port=_get_stripe_client(),
        plan_catalog=_get_plan_catalog(),
    )


def get_create_top_up_session_use_case() -> CreateTopUpSessionUseCase:
    settings = get_settings()
    return CreateTopUpSessionUseCase(
        accounts_port=_get_accounts_repository(),
        stripe_port=_get_stripe_client(),
        top_up_price_id=settings.stripe_price_topup_id or None,
        top_up_credits=settings.topup_credits,
    )


def get_cancel_subscription_use_case() -> CancelSubscriptionUseCase:
    return CancelSubscriptionUseCase(
        accounts_port=_get_accounts_repository(),
        stripe_port=_get_stripe_client(),
    )


def get_sync_subscription_use_case() -> SyncSubscriptionUseCase:
    settings = get_settings()
    return SyncSubscriptionUseCase(
        accounts_port=_get_accounts_repository(),
        stripe_port=_get_stripe_client(),
        plan_catalog=_get_plan_catalog(),
        subscription_credits=settings.subscription_credits,
    )


def get_process_stripe_webhook_use_case() -> ProcessStripeWebhookUseCase:
    settings = get_settings()
    return ProcessStripeWebhookUseCase(
        accounts_port=_get_accounts_repository(),
        stripe_port=_get_webhook_stripe_client(),
        plan_catalog=_get_plan_catalog(),
        subscription_credits=settings.subscription_credits,
        top_up_credits=settings.topup_credits,
    )
