from __future__ import annotations

import logging

import httpx

from mockup_studio.application.ports.email_port import EmailPort
from mockup_studio.domain.exceptions import EmailDeliveryError


logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"


class BrevoEmailClient(EmailPort):
    def __init__(
        self,
        *,
        api_key: str,
        sender_email: str,
        sender_name: str,
        timeout_seconds: float = 15.0,
    ):
        self._api_key = api_key
        self._sender_email = sender_email
        self._sender_name = sender_name
        self._timeout_seconds = timeout_seconds

    def send_email(self, *, to_email: str, subject: str, html_content: str) -> None:
        if not self._api_key:
            raise EmailDeliveryError("BREVO_API_KEY is not configured.")

        body = {
            "sender": {"name": self._sender_name, "email": self._sender_email},
            "to": [{"email": to_email}],
            "subject": subject,
            "htmlContent": html_content,
        }
        headers = {
            "accept": "application/json",
            "api-key": self._api_key,
            "content-type": "application/json",
        }
        try:
            with httpx.Client(timeout=self._timeout_seconds) as client:
                response = client.post(BREVO_SEND_URL, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Failed to reach email provider: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "brevo_email_client: send_failed status=%s body=%s",
                response.status_code,
                response.text[:300],
            )
            raise EmailDeliveryError(f"Failed to send email: {response.status_code}")

        logger.info("brevo_email_client: sent subject=%s", subject)
