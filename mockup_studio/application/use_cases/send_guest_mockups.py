from __future__ import annotations

import logging

from mockup_studio.application.dto.guest import SendGuestMockupsInput, SendGuestMockupsOutput
from mockup_studio.application.email_templates import render_guest_mockups_email
from mockup_studio.application.ports.email_port import EmailPort
from mockup_studio.domain.exceptions import ValidationError
from mockup_studio.domain.services.fingerprint import guest_email_key

from .common import ONE_DAY, normalize_email, utcnow
from .guest_sessions import GuestSessionManager
from .rate_limiter import RateLimiter


logger = logging.getLogger(__name__)

EMAIL_LIMIT_MESSAGE = "Too many email requests from this IP today. Please try again tomorrow."


class SendGuestMockupsUseCase:
    def __init__(
        self,
        *,
        session_manager: GuestSessionManager,
        rate_limiter: RateLimiter,
        email_port: EmailPort,
        signup_url: str,
        daily_limit: int = 5,
    ):
        self._session_manager = session_manager
        self._rate_limiter = rate_limiter
        self._email_port = email_port
        self._signup_url = signup_url
        self._daily_limit = daily_limit

    def execute(self, command: SendGuestMockupsInput) -> SendGuestMockupsOutput:
        email = normalize_email(command.email)
        session_id = (command.session_id or "").strip()
        if not email:
            raise ValidationError("Missing email")
        if "@" not in email:
            raise ValidationError("Invalid email")
        if not session_id:
            raise ValidationError("Missing sessionId")

        now = utcnow()
        self._rate_limiter.enforce(
            key=guest_email_key(command.fingerprint, now.strftime("%Y-%m-%d")),
            limit=self._daily_limit,
            window=ONE_DAY,
            message=EMAIL_LIMIT_MESSAGE,
            now=now,
        )

        session = self._session_manager.request_email(session_id=session_id, email=email)
        urls = [result.url for result in session.results]
        message = render_guest_mockups_email(mockup_urls=urls, signup_url=self._signup_url)
        self._email_port.send_email(to_email=email, subject=message.subject, html_content=message.html_content)
        self._session_manager.mark_email_sent(session_id=session.id)

        logger.info("send_guest_mockups: sent session_id=%s mockups=%s", session.id, len(urls))
        return SendGuestMockupsOutput(session_id=session.id, email=email, sent_count=len(urls))
