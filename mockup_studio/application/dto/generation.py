from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GeneratedImage:
    mime_type: str
    payload: bytes


@dataclass(frozen=True)
class CategoryOutcome:
    category: str
    url: str | None
    error: str | None
