from __future__ import annotations

from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.stripe_port import StripePort
from mockup_studio.domain.entities.account import UserAccount


def append_query(url: str, query: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


def ensure_stripe_customer(
    *,
    user: UserAccount,
    accounts_port: AccountsPort,
    stripe_port: StripePort,
) -> str:
    if user.stripe_customer_id:
        return user.stripe_customer_id
    customer_id = stripe_port.create_customer(user_id=user.id, email=user.email, name=user.display_name)
    accounts_port.update_user_stripe_customer_id(user_id=user.id, stripe_customer_id=customer_id)
    return customer_id


def parse_credit_amount(value: object, *, default: int) -> int:
    try:
        amount = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return amount if amount > 0 else default
