from __future__ import annotations

from google.auth.transport import requests
from google.oauth2 import id_token

from mockup_studio.application.dto.identity import VerifiedIdentity
from mockup_studio.application.ports.identity_port import IdentityPort
from mockup_studio.domain.exceptions import UnauthorizedError


class FirebaseIdentityClient(IdentityPort):
    def __init__(self, *, project_id: str):
        self._project_id = project_id

    def verify_token(self, *, token: str) -> VerifiedIdentity:
        try:
            payload = firebase_token_verify(token=token, audience=self._project_id)
        except Exception as exc:  # pragma: no cover - depends on external validation errors
            raise UnauthorizedError("Invalid or expired token") from exc

        uid = payload.get("user_id") or payload.get("sub")
        if not uid:
            raise UnauthorizedError("Token missing required claims")

        email_verified_raw = payload.get("email_verified", False)
        email_verified = bool(email_verified_raw)
        if isinstance(email_verified_raw, str):
            email_verified = email_verified_raw.lower() == "true"

        email = payload.get("email") if isinstance(payload.get("email"), str) else None
        name = payload.get("name") if isinstance(payload.get("name"), str) else None
        return VerifiedIdentity(
            uid=str(uid),
            email=email,
            name=name,
            email_verified=email_verified,
        )


def firebase_token_verify(*, token: str, audience: str) -> dict:
    request = requests.Request()
    return id_token.verify_firebase_token(token, request, audience=audience)
