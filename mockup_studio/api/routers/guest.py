from __future__ import annotations

from fastapi import APIRouter, Depends

from mockup_studio.api.deps import (
    get_claim_guest_session_use_case,
    get_client_fingerprint,
    get_current_account,
    get_generate_guest_mockups_use_case,
    get_send_guest_mockups_use_case,
)
from mockup_studio.api.errors import to_http_exception
from mockup_studio.api.schemas.guest import (
    ClaimGuestSessionRequest,
    ClaimGuestSessionResponse,
    GenerateGuestMockupsRequest,
    GenerateGuestMockupsResponse,
    GuestErrorResponse,
    GuestResultResponse,
    SendGuestMockupsRequest,
    SendGuestMockupsResponse,
)
from mockup_studio.application.dto.guest import (
    ClaimGuestSessionInput,
    GenerateGuestMockupsInput,
    SendGuestMockupsInput,
)
from mockup_studio.application.use_cases.claim_guest_session import ClaimGuestSessionUseCase
from mockup_studio.application.use_cases.generate_guest_mockups import GenerateGuestMockupsUseCase
from mockup_studio.application.use_cases.send_guest_mockups import SendGuestMockupsUseCase
from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.exceptions import DomainError


router = APIRouter()


@router.post("/generateGuestMockups", response_model=GenerateGuestMockupsResponse)
def generate_guest_mockups(
    req: GenerateGuestMockupsRequest,
    fingerprint: str = Depends(get_client_fingerprint),
    use_case: GenerateGuestMockupsUseCase = Depends(get_generate_guest_mockups_use_case),
):
    try:
        output = use_case.execute(
            GenerateGuestMockupsInput(
                artwork_url=req.artwork_url or "",
                fingerprint=fingerprint,
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return GenerateGuestMockupsResponse(
        session_id=output.session_id,
        results=[GuestResultResponse(category=item.category, url=item.url) for item in output.results],
        errors=[GuestErrorResponse(category=item.category, message=item.message) for item in output.errors],
    )


@router.post("/sendGuestMockups", response_model=SendGuestMockupsResponse)
def send_guest_mockups(
    req: SendGuestMockupsRequest,
    fingerprint: str = Depends(get_client_fingerprint),
    use_case: SendGuestMockupsUseCase = Depends(get_send_guest_mockups_use_case),
):
    try:
        output = use_case.execute(
            SendGuestMockupsInput(
                session_id=req.session_id or "",
                email=req.email or "",
                fingerprint=fingerprint,
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return SendGuestMockupsResponse(message=f"Sent {output.sent_count} mockups to {output.email}")


@router.post("/claimGuestSession", response_model=ClaimGuestSessionResponse)
def claim_guest_session(
    req: ClaimGuestSessionRequest,
    account: UserAccount = Depends(get_current_account),
    use_case: ClaimGuestSessionUseCase = Depends(get_claim_guest_session_use_case),
):
    try:
        output = use_case.execute(
            ClaimGuestSessionInput(
                session_id=req.session_id or "",
                user_id=account.id,
                user_email=account.email or None,
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return ClaimGuestSessionResponse(copied_count=output.copied_count, artwork_id=output.artwork_id)
