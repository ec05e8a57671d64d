from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, Field

from mockup_studio.domain.entities.studio import Mockup

from .base import CamelModel
from .guest import GuestErrorResponse


class GenerateMemberMockupsRequest(CamelModel):
    product: str | None = None
    artwork_id: str | None = None
    artwork_url: str | None = None
    aspect_ratio: str | None = None
    num_variations: int | None = None
    custom_prompt: str | None = None


class MockupResponse(CamelModel):
    id: str
    url: str
    category: str
    artwork_id: str | None = None
    variation: int | None = None
    aspect_ratio: str
    custom_prompt: str | None = None
    imported_from_guest: bool = False
    created_at: datetime

    @classmethod
    def from_entity(cls, mockup: Mockup) -> "MockupResponse":
        return cls(
            id=mockup.id,
            url=mockup.url,
            category=mockup.category,
            artwork_id=mockup.artwork_id,
            variation=mockup.variation,
            aspect_ratio=mockup.aspect_ratio,
            custom_prompt=mockup.custom_prompt,
            imported_from_guest=mockup.imported_from_guest,
            created_at=mockup.created_at,
        )


class GenerateMemberMockupsResponse(CamelModel):
    ok: bool = True
    results: list[MockupResponse]
    errors: list[GuestErrorResponse]
    remaining_credits: int


class EditMockupRequest(CamelModel):
    mockup_id: str | None = None
    prompt: str | None = Field(default=None, validation_alias=AliasChoices("editPrompt", "prompt"))


class EditMockupResponse(CamelModel):
    ok: bool = True
    mockup: MockupResponse
    remaining_credits: int
