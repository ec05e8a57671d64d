from __future__ import annotations

import logging
from dataclasses import replace
from uuid import uuid4

from mockup_studio.application.dto.guest import ClaimGuestSessionInput, ClaimGuestSessionOutput
from mockup_studio.application.ports.studio_port import StudioPort
from mockup_studio.domain.entities.guest_session import GuestError, GuestResult, GuestSession
from mockup_studio.domain.entities.studio import Artwork, Mockup
from mockup_studio.domain.exceptions import (
    AlreadyClaimedError,
    AlreadySentError,
    AllGenerationsFailedError,
    EmailMismatchError,
    GuestSessionNotFoundError,
    ValidationError,
)

from .common import emails_match, normalize_email, utcnow


logger = logging.getLogger(__name__)

IMPORTED_ARTWORK_NAME = "Imported from Guest Studio"


def new_session_id() -> str:
    return uuid4().hex


class GuestSessionManager:
    """Lifecycle of anonymous guest sessions.

    Status moves created -> generated -> pending_email -> email_sent. Claiming
    is orthogonal: once ``claimed_by`` is set the session is never updated again.
    """

    def __init__(self, *, studio_port: StudioPort):
        self._studio_port = studio_port

    def create_session(self, *, artwork_url: str, session_id: str | None = None) -> str:
        session = self._studio_port.create_guest_session(
            session_id=session_id or new_session_id(),
            artwork_url=artwork_url,
            now=utcnow(),
        )
        logger.info("guest_sessions: created session_id=%s", session.id)
        return session.id

    def get_session(self, *, session_id: str) -> GuestSession:
        session = self._studio_port.get_guest_session(session_id=session_id)
        if session is None:
            raise GuestSessionNotFoundError("Guest session not found")
        return session

    def record_results(
        self,
        *,
        session_id: str,
        results: list[GuestResult],
        errors: list[GuestError],
    ) -> GuestSession:
        def _tx(studio_port: StudioPort) -> GuestSession:
            session = _lock_unclaimed(studio_port, session_id)
            status = "generated" if results else session.status
            now = utcnow()
            studio_port.save_guest_session_results(
                session_id=session.id,
                results=list(results),
                errors=list(errors),
                status=status,
                now=now,
            )
            return replace(session, results=list(results), errors=list(errors), status=status, updated_at=now)

        session = self._studio_port.execute_in_transaction(_tx)
        logger.info(
            "guest_sessions: results_recorded session_id=%s results=%s errors=%s",
            session_id,
            len(results),
            len(errors),
        )
        if not results:
            raise AllGenerationsFailedError("All generations failed.", errors=list(errors))
        return session

    def request_email(self, *, session_id: str, email: str) -> GuestSession:
        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError("Missing email")

        def _tx(studio_port: StudioPort) -> GuestSession:
            session = _lock_unclaimed(studio_port, session_id)
            if session.status == "email_sent":
                raise AlreadySentError("Email already sent for this session.")
            if session.email and not emails_match(session.email, normalized):
                raise EmailMismatchError("Email mismatch for this session.")
            if not session.results:
                raise ValidationError("No mockups to send.")

            now = utcnow()
            studio_port.update_guest_session_email(
                session_id=session.id,
                email=normalized,
                status="pending_email",
                now=now,
            )
            return replace(session, email=normalized, status="pending_email", updated_at=now)

        return self._studio_port.execute_in_transaction(_tx)

    def mark_email_sent(self, *, session_id: str) -> None:
        def _tx(studio_port: StudioPort) -> None:
            session = _lock_unclaimed(studio_port, session_id)
            if session.status != "pending_email":
                raise ValidationError("Guest session has no pending email.")
            studio_port.update_guest_session_status(session_id=session.id, status="email_sent", now=utcnow())

        self._studio_port.execute_in_transaction(_tx)
        logger.info("guest_sessions: email_sent session_id=%s", session_id)

    def claim(self, command: ClaimGuestSessionInput) -> ClaimGuestSessionOutput:
        def _tx(studio_port: StudioPort) -> ClaimGuestSessionOutput:
            session = studio_port.lock_guest_session(session_id=command.session_id)
            if session is None:
                raise GuestSessionNotFoundError("Guest session not found")
            if session.is_claimed:
                raise AlreadyClaimedError("Session already claimed")
            if session.email and not emails_match(session.email, command.user_email):
                raise EmailMismatchError("Email mismatch for this session.")
            if not session.results:
                raise ValidationError("Guest session has no mockups to claim.")

            now = utcnow()
            artwork = studio_port.create_artwork(
                artwork=Artwork(
                    id=str(uuid4()),
                    user_id=command.user_id,
                    url=session.artwork_url,
                    name=IMPORTED_ARTWORK_NAME,
                    created_at=now,
                )
            )
            for result in session.results:
                studio_port.create_mockup(
                    mockup=Mockup(
                        id=str(uuid4()),
                        user_id=command.user_id,
                        artwork_id=artwork.id,
                        category=result.category,
                        url=result.url,
                        variation=None,
                        aspect_ratio="1:1",
                        custom_prompt=None,
                        imported_from_guest=True,
                        created_at=now,
                    )
                )
            studio_port.mark_guest_session_claimed(
                session_id=session.id,
                user_id=command.user_id,
                claimed_at=now,
            )
            return ClaimGuestSessionOutput(
                session_id=session.id,
                artwork_id=artwork.id,
                copied_count=len(session.results),
            )

        output = self._studio_port.execute_in_transaction(_tx)
        logger.info(
            "guest_sessions: claimed session_id=%s user_id=%s copied=%s",
            output.session_id,
            command.user_id,
            output.copied_count,
        )
        return output


def _lock_unclaimed(studio_port: StudioPort, session_id: str) -> GuestSession:
    session = studio_port.lock_guest_session(session_id=session_id)
    if session is None:
        raise GuestSessionNotFoundError("Guest session not found")
    if session.is_claimed:
        raise AlreadyClaimedError("Session already claimed")
    return session
