from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


GuestSessionStatus = Literal["created", "generated", "pending_email", "email_sent"]


@dataclass(frozen=True)
class GuestResult:
    category: str
    url: str


@dataclass(frozen=True)
class GuestError:
    category: str
    message: str


@dataclass(frozen=True)
class GuestSession:
    id: str
    artwork_url: str
    results: list[GuestResult]
    errors: list[GuestError]
    status: GuestSessionStatus
    email: str | None
    claimed_by: str | None
    claimed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_claimed(self) -> bool:
        return self.claimed_by is not None
