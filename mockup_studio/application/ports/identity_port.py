from __future__ import annotations

from typing import Protocol

from mockup_studio.application.dto.identity import VerifiedIdentity


class IdentityPort(Protocol):
    def verify_token(self, *, token: str) -> VerifiedIdentity:
        ...
