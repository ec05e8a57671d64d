from __future__ import annotations

from .base import CamelModel


class GenerateGuestMockupsRequest(CamelModel):
    artwork_url: str | None = None


class GuestResultResponse(CamelModel):
    category: str
    url: str


class GuestErrorResponse(CamelModel):
    category: str
    message: str


class GenerateGuestMockupsResponse(CamelModel):
    ok: bool = True
    session_id: str
    results: list[GuestResultResponse]
    errors: list[GuestErrorResponse]


class SendGuestMockupsRequest(CamelModel):
    session_id: str | None = None
    email: str | None = None


class SendGuestMockupsResponse(CamelModel):
    ok: bool = True
    message: str


class ClaimGuestSessionRequest(CamelModel):
    session_id: str | None = None


class ClaimGuestSessionResponse(CamelModel):
    ok: bool = True
    copied_count: int
    artwork_id: str
