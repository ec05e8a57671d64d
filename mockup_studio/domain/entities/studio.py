from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Artwork:
    id: str
    user_id: str
    url: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Mockup:
    id: str
    user_id: str
    artwork_id: str | None
    category: str
    url: str
    variation: int | None
    aspect_ratio: str
    custom_prompt: str | None
    imported_from_guest: bool
    created_at: datetime
