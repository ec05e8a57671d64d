from __future__ import annotations

from dataclasses import dataclass

from mockup_studio.domain.entities.guest_session import GuestError
from mockup_studio.domain.entities.studio import Mockup


@dataclass(frozen=True)
class GenerateMemberMockupsInput:
    user_id: str
    product: str
    artwork_id: str | None = None
    artwork_url: str | None = None
    aspect_ratio: str | None = None
    num_variations: int = 1
    custom_prompt: str | None = None


@dataclass(frozen=True)
class GenerateMemberMockupsOutput:
    results: list[Mockup]
    errors: list[GuestError]
    remaining_credits: int


@dataclass(frozen=True)
class EditMockupInput:
    user_id: str
    mockup_id: str
    prompt: str


@dataclass(frozen=True)
class EditMockupOutput:
    mockup: Mockup
    remaining_credits: int
