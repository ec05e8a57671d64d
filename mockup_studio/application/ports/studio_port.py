from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, TypeVar

from mockup_studio.domain.entities.guest_session import GuestError, GuestResult, GuestSession
from mockup_studio.domain.entities.studio import Artwork, Mockup


TStudioResult = TypeVar("TStudioResult")


class StudioPort(Protocol):
    def execute_in_transaction(self, fn: Callable[[StudioPort], TStudioResult]) -> TStudioResult:
        ...

    def create_guest_session(self, *, session_id: str, artwork_url: str, now: datetime) -> GuestSession:
        ...

    def get_guest_session(self, *, session_id: str) -> GuestSession | None:
        ...

    def lock_guest_session(self, *, session_id: str) -> GuestSession | None:
        ...

    def save_guest_session_results(
        self,
        *,
        session_id: str,
        results: list[GuestResult],
        errors: list[GuestError],
        status: str,
        now: datetime,
    ) -> None:
        ...

    def update_guest_session_email(self, *, session_id: str, email: str, status: str, now: datetime) -> None:
        ...

    def update_guest_session_status(self, *, session_id: str, status: str, now: datetime) -> None:
        ...

    def mark_guest_session_claimed(self, *, session_id: str, user_id: str, claimed_at: datetime) -> None:
        ...

    def delete_guest_sessions_by_email(self, *, email: str) -> int:
        ...

    def create_artwork(self, *, artwork: Artwork) -> Artwork:
        ...

    def get_artwork(self, *, user_id: str, artwork_id: str) -> Artwork | None:
        ...

    def create_mockup(self, *, mockup: Mockup) -> Mockup:
        ...

    def get_mockup(self, *, user_id: str, mockup_id: str) -> Mockup | None:
        ...

    def update_mockup_image(
        self,
        *,
        user_id: str,
        mockup_id: str,
        url: str,
        custom_prompt: str | None,
    ) -> Mockup | None:
        ...

    def delete_user_content(self, *, user_id: str) -> int:
        ...
