from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _csv(name: str) -> tuple[str, ...]:
    value = _env(name, "") or ""
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    postgres_dsn: str
    app_base_url: str
    firebase_project_id: str
    storage_bucket: str
    allowed_image_hosts: tuple[str, ...]
    admin_emails: tuple[str, ...]
    genai_api_key: str
    genai_model: str
    genai_api_base: str
    genai_timeout_seconds: float
    genai_max_retries: int
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_price_monthly_id: str
    stripe_price_quarterly_id: str
    stripe_price_six_months_id: str
    stripe_price_topup_id: str
    stripe_success_url: str
    stripe_cancel_url: str
    brevo_api_key: str
    email_sender_name: str
    email_sender_address: str
    guest_generation_daily_limit: int
    guest_email_daily_limit: int
    signup_bonus_credits: int
    subscription_credits: int
    topup_credits: int
    cors_origins: tuple[str, ...]
    log_level: str


def get_settings() -> Settings:
    app_base_url = (_env("APP_BASE_URL", "https://situ.app") or "").rstrip("/")
    return Settings(
        postgres_dsn=_env("POSTGRES_DSN", ""),
        app_base_url=app_base_url,
        firebase_project_id=_env("FIREBASE_PROJECT_ID", ""),
        storage_bucket=_env("STORAGE_BUCKET", ""),
        allowed_image_hosts=_csv("ALLOWED_IMAGE_HOSTS"),
        admin_emails=tuple(email.lower() for email in _csv("ADMIN_EMAILS")),
        genai_api_key=_env("GENAI_API_KEY", ""),
        genai_model=_env("GENAI_MODEL", "gemini-2.5-flash-image"),
        genai_api_base=_env("GENAI_API_BASE", "https://generativelanguage.googleapis.com"),
        genai_timeout_seconds=float(_env("GENAI_TIMEOUT_SECONDS", "120")),
        genai_max_retries=int(_env("GENAI_MAX_RETRIES", "3")),
        stripe_secret_key=_env("STRIPE_SECRET_KEY", ""),
        stripe_webhook_secret=_env("STRIPE_WEBHOOK_SECRET", ""),
        stripe_price_monthly_id=_env("STRIPE_PRICE_MONTHLY_ID", ""),
        stripe_price_quarterly_id=_env("STRIPE_PRICE_QUARTERLY_ID", ""),
        stripe_price_six_months_id=_env("STRIPE_PRICE_SIX_MONTHS_ID", ""),
        stripe_price_topup_id=_env("STRIPE_PRICE_TOPUP_ID", ""),
        stripe_success_url=_env("STRIPE_SUCCESS_URL", f"{app_base_url}/studio"),
        stripe_cancel_url=_env("STRIPE_CANCEL_URL", f"{app_base_url}/pricing"),
        brevo_api_key=_env("BREVO_API_KEY", ""),
        email_sender_name=_env("EMAIL_SENDER_NAME", "Situ App"),
        email_sender_address=_env("EMAIL_SENDER_ADDRESS", "noreply@situ.app"),
        guest_generation_daily_limit=int(_env("GUEST_GENERATION_DAILY_LIMIT", "10")),
        guest_email_daily_limit=int(_env("GUEST_EMAIL_DAILY_LIMIT", "5")),
        signup_bonus_credits=int(_env("SIGNUP_BONUS_CREDITS", "12")),
        subscription_credits=int(_env("SUBSCRIPTION_CREDITS", "50")),
        topup_credits=int(_env("TOPUP_CREDITS", "50")),
        cors_origins=_csv("CORS_ORIGINS") or ("*",),
        log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )
