from __future__ import annotations

import logging

from mockup_studio.application.dto.account import MeOutput
from mockup_studio.application.dto.identity import VerifiedIdentity
from mockup_studio.application.email_templates import render_welcome_email
from mockup_studio.application.ports.accounts_port import AccountsPort
from mockup_studio.application.ports.email_port import EmailPort
from mockup_studio.domain.exceptions import EmailDeliveryError, UserNotFoundError

from .common import normalize_email, utcnow


logger = logging.getLogger(__name__)


class EnsureAccountUseCase:
    """Loads the caller's account, creating it with the signup bonus on first use."""

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        email_port: EmailPort | None,
        signup_bonus_credits: int,
        studio_url: str,
    ):
        self._accounts_port = accounts_port
        self._email_port = email_port
        self._signup_bonus_credits = signup_bonus_credits
        self._studio_url = studio_url

    def execute(self, identity: VerifiedIdentity) -> MeOutput:
        account = self._accounts_port.get_user_by_id(user_id=identity.uid)
        if account is not None:
            return MeOutput(account=account, created=False)

        created = self._accounts_port.create_user(
            user_id=identity.uid,
            email=normalize_email(identity.email),
            display_name=identity.name,
            credits=self._signup_bonus_credits,
            now=utcnow(),
        )
        if created is None:
            # concurrent first request already created it
            account = self._accounts_port.get_user_by_id(user_id=identity.uid)
            if account is None:
                raise UserNotFoundError("User not found.")
            return MeOutput(account=account, created=False)

        logger.info(
            "ensure_account: created user_id=%s credits=%s",
            created.id,
            created.credits,
        )
        self._send_welcome(created.email, created.display_name)
        return MeOutput(account=created, created=True)

    def _send_welcome(self, email: str, display_name: str | None) -> None:
        if self._email_port is None or not email:
            return
        message = render_welcome_email(display_name=display_name, studio_url=self._studio_url)
        try:
            self._email_port.send_email(to_email=email, subject=message.subject, html_content=message.html_content)
        except EmailDeliveryError as exc:
            logger.warning("ensure_account: welcome_email_failed email=%s error=%s", email, exc)
