from __future__ import annotations

from dataclasses import dataclass

from mockup_studio.domain.entities.guest_session import GuestError, GuestResult


@dataclass(frozen=True)
class GenerateGuestMockupsInput:
    artwork_url: str
    fingerprint: str


@dataclass(frozen=True)
class GenerateGuestMockupsOutput:
    session_id: str
    results: list[GuestResult]
    errors: list[GuestError]


@dataclass(frozen=True)
class SendGuestMockupsInput:
    session_id: str
    email: str
    fingerprint: str


@dataclass(frozen=True)
class SendGuestMockupsOutput:
    session_id: str
    email: str
    sent_count: int


@dataclass(frozen=True)
class ClaimGuestSessionInput:
    session_id: str
    user_id: str
    user_email: str | None


@dataclass(frozen=True)
class ClaimGuestSessionOutput:
    session_id: str
    artwork_id: str
    copied_count: int
