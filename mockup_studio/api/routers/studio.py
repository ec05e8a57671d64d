from __future__ import annotations

from fastapi import APIRouter, Depends

from mockup_studio.api.deps import (
    get_current_account,
    get_edit_mockup_use_case,
    get_generate_member_mockups_use_case,
)
from mockup_studio.api.errors import to_http_exception
from mockup_studio.api.schemas.guest import GuestErrorResponse
from mockup_studio.api.schemas.studio import (
    EditMockupRequest,
    EditMockupResponse,
    GenerateMemberMockupsRequest,
    GenerateMemberMockupsResponse,
    MockupResponse,
)
from mockup_studio.application.dto.member import EditMockupInput, GenerateMemberMockupsInput
from mockup_studio.application.use_cases.edit_mockup import EditMockupUseCase
from mockup_studio.application.use_cases.generate_member_mockups import GenerateMemberMockupsUseCase
from mockup_studio.domain.entities.account import UserAccount
from mockup_studio.domain.exceptions import DomainError


router = APIRouter()


@router.post("/generateMemberMockups", response_model=GenerateMemberMockupsResponse)
def generate_member_mockups(
    req: GenerateMemberMockupsRequest,
    account: UserAccount = Depends(get_current_account),
    use_case: GenerateMemberMockupsUseCase = Depends(get_generate_member_mockups_use_case),
):
    try:
        output = use_case.execute(
            GenerateMemberMockupsInput(
                user_id=account.id,
                product=req.product or "",
                artwork_id=req.artwork_id,
                artwork_url=req.artwork_url,
                aspect_ratio=req.aspect_ratio,
                num_variations=req.num_variations if req.num_variations is not None else 1,
                custom_prompt=req.custom_prompt,
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return GenerateMemberMockupsResponse(
        results=[MockupResponse.from_entity(mockup) for mockup in output.results],
        errors=[GuestErrorResponse(category=item.category, message=item.message) for item in output.errors],
        remaining_credits=output.remaining_credits,
    )


@router.post("/editMockup", response_model=EditMockupResponse)
def edit_mockup(
    req: EditMockupRequest,
    account: UserAccount = Depends(get_current_account),
    use_case: EditMockupUseCase = Depends(get_edit_mockup_use_case),
):
    try:
        output = use_case.execute(
            EditMockupInput(
                user_id=account.id,
                mockup_id=req.mockup_id or "",
                prompt=req.prompt or "",
            )
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return EditMockupResponse(
        mockup=MockupResponse.from_entity(output.mockup),
        remaining_credits=output.remaining_credits,
    )
