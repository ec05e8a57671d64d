from __future__ import annotations

from dataclasses import dataclass

from mockup_studio.domain.entities.account import UserAccount


@dataclass(frozen=True)
class CreditCheck:
    ok: bool
    remaining: int


@dataclass(frozen=True)
class AdjustCreditsInput:
    user_id: str
    delta: int
    reason: str
    admin_email: str | None


@dataclass(frozen=True)
class AdjustCreditsOutput:
    user_id: str
    previous_credits: int
    new_credits: int


@dataclass(frozen=True)
class MeOutput:
    account: UserAccount
    created: bool
