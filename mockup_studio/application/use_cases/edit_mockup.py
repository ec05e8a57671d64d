from __future__ import annotations

import logging

from mockup_studio.application.dto.member import EditMockupInput, EditMockupOutput
from mockup_studio.application.ports.image_generation_port import ImageGenerationPort
from mockup_studio.application.ports.storage_port import StoragePort
from mockup_studio.application.ports.studio_port import StudioPort
from mockup_studio.domain.entities.studio import Mockup
from mockup_studio.domain.exceptions import MockupNotFoundError, ValidationError
from mockup_studio.domain.services.image_url_policy import ImageUrlPolicy

from .common import storage_stamp
from .credit_ledger import CreditLedger
from .generate_member_mockups import validate_custom_prompt
from .generation_common import image_extension, store_generated_image


logger = logging.getLogger(__name__)

EDIT_COST = 1


class EditMockupUseCase:
    def __init__(
        self,
        *,
        credit_ledger: CreditLedger,
        studio_port: StudioPort,
        image_generation_port: ImageGenerationPort,
        storage_port: StoragePort,
        url_policy: ImageUrlPolicy,
    ):
        self._credit_ledger = credit_ledger
        self._studio_port = studio_port
        self._image_generation_port = image_generation_port
        self._storage_port = storage_port
        self._url_policy = url_policy

    def execute(self, command: EditMockupInput) -> EditMockupOutput:
        mockup_id = (command.mockup_id or "").strip()
        prompt = validate_custom_prompt(command.prompt)
        if not mockup_id or not prompt:
            raise ValidationError("Missing mockupId or prompt")

        self._credit_ledger.check_and_reserve(user_id=command.user_id, cost=EDIT_COST)

        mockup = self._studio_port.get_mockup(user_id=command.user_id, mockup_id=mockup_id)
        if mockup is None:
            raise MockupNotFoundError("Mockup not found")
        if not self._url_policy.is_allowed(mockup.url):
            raise ValidationError("Invalid mockup source URL")

        remaining = self._credit_ledger.deduct(user_id=command.user_id, amount=EDIT_COST)
        try:
            updated = self._apply_edit(user_id=command.user_id, mockup=mockup, prompt=prompt)
        except Exception:
            remaining = self._credit_ledger.grant(user_id=command.user_id, amount=EDIT_COST, reason="edit_refund")
            logger.warning(
                "edit_mockup: refunded user_id=%s mockup_id=%s remaining=%s",
                command.user_id,
                mockup.id,
                remaining,
            )
            raise

        logger.info("edit_mockup: edited user_id=%s mockup_id=%s remaining=%s", command.user_id, mockup.id, remaining)
        return EditMockupOutput(mockup=updated, remaining_credits=remaining)

    def _apply_edit(self, *, user_id: str, mockup: Mockup, prompt: str) -> Mockup:
        image = self._image_generation_port.generate_mockup(
            category=mockup.category,
            artwork_url=mockup.url,
            custom_prompt=prompt,
            aspect_ratio=mockup.aspect_ratio,
        )
        url = store_generated_image(
            self._storage_port,
            image=image,
            path=(
                f"users/{user_id}/mockups/"
                f"{storage_stamp()}_{mockup.category}_edit.{image_extension(image.mime_type)}"
            ),
        )
        updated = self._studio_port.update_mockup_image(
            user_id=user_id,
            mockup_id=mockup.id,
            url=url,
            custom_prompt=prompt,
        )
        if updated is None:
            raise MockupNotFoundError("Mockup not found")
        return updated
