from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VerifiedIdentity:
    uid: str
    email: str | None
    name: str | None
    email_verified: bool
