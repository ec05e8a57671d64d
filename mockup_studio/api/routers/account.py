from __future__ import annotations

from fastapi import APIRouter, Depends

from mockup_studio.api.deps import (
    get_credit_ledger,
    get_current_identity,
    get_ensure_account_use_case,
    require_admin,
)
from mockup_studio.api.errors import to_http_exception
from mockup_studio.api.schemas.account import (
    AccountResponse,
    AdjustCreditsRequest,
    AdjustCreditsResponse,
    MeResponse,
)
from mockup_studio.application.dto.account import AdjustCreditsInput
from mockup_studio.application.dto.identity import VerifiedIdentity
from mockup_studio.application.use_cases.credit_ledger import CreditLedger
from mockup_studio.application.use_cases.ensure_account import EnsureAccountUseCase
from mockup_studio.domain.exceptions import DomainError


router = APIRouter()


@router.get("/me", response_model=MeResponse)
def get_me(
    identity: VerifiedIdentity = Depends(get_current_identity),
    use_case: EnsureAccountUseCase = Depends(get_ensure_account_use_case),
):
    try:
        output = use_case.execute(identity)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return MeResponse(created=output.created, user=AccountResponse.from_entity(output.account))


@router.post("/admin/users/{user_id}/credits", response_model=AdjustCreditsResponse)
def adjust_user_credits(
    user_id: str,
    req: AdjustCreditsRequest,
    admin: VerifiedIdentity = Depends(require_admin),
    ledger: CreditLedger = Depends(get_credit_ledger),
):
    try:
        output = ledger.adjust(
            AdjustCreditsInput(
                user_id=user_id,
                delta=req.delta,
                reason=req.reason or "",
                admin_email=admin.email,
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return AdjustCreditsResponse(
        user_id=output.user_id,
        previous_credits=output.previous_credits,
        new_credits=output.new_credits,
    )
