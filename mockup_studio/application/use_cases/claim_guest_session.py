from __future__ import annotations

from mockup_studio.application.dto.guest import ClaimGuestSessionInput, ClaimGuestSessionOutput
from mockup_studio.domain.exceptions import ValidationError

from .guest_sessions import GuestSessionManager


class ClaimGuestSessionUseCase:
    def __init__(self, *, session_manager: GuestSessionManager):
        self._session_manager = session_manager

    def execute(self, command: ClaimGuestSessionInput) -> ClaimGuestSessionOutput:
        session_id = (command.session_id or "").strip()
        if not session_id:
            raise ValidationError("Missing sessionId")
        return self._session_manager.claim(
            ClaimGuestSessionInput(
                session_id=session_id,
                user_id=command.user_id,
                user_email=command.user_email,
            )
        )
