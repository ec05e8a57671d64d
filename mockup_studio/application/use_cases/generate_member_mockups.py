from __future__ import annotations

import logging
from uuid import uuid4

from mockup_studio.application.dto.member import GenerateMemberMockupsInput, GenerateMemberMockupsOutput
from mockup_studio.application.ports.image_generation_port import ImageGenerationPort
from mockup_studio.application.ports.storage_port import StoragePort
from mockup_studio.application.ports.studio_port import StudioPort
from mockup_studio.domain.entities.guest_session import GuestError
from mockup_studio.domain.entities.studio import Mockup
from mockup_studio.domain.exceptions import ArtworkNotFoundError, ValidationError
from mockup_studio.domain.services.image_url_policy import ImageUrlPolicy, is_data_url

from .common import storage_stamp, utcnow
from .credit_ledger import CreditLedger
from .generation_common import image_extension, run_parallel, store_generated_image, upload_data_url


logger = logging.getLogger(__name__)

ASPECT_RATIOS: tuple[str, ...] = ("1:1", "16:9", "9:16", "4:3", "3:4")
DEFAULT_ASPECT_RATIO = "1:1"
MAX_VARIATIONS = 4
MAX_CUSTOM_PROMPT_LENGTH = 500


def validate_custom_prompt(value: str | None) -> str | None:
    prompt = (value or "").strip()
    if not prompt:
        return None
    if len(prompt) > MAX_CUSTOM_PROMPT_LENGTH:
        raise ValidationError(f"customPrompt must have at most {MAX_CUSTOM_PROMPT_LENGTH} characters.")
    return prompt


class GenerateMemberMockupsUseCase:
    def __init__(
        self,
        *,
        credit_ledger: CreditLedger,
        studio_port: StudioPort,
        image_generation_port: ImageGenerationPort,
        storage_port: StoragePort,
        url_policy: ImageUrlPolicy,
        max_workers: int = 4,
    ):
        self._credit_ledger = credit_ledger
        self._studio_port = studio_port
        self._image_generation_port = image_generation_port
        self._storage_port = storage_port
        self._url_policy = url_policy
        self._max_workers = max_workers

    def execute(self, command: GenerateMemberMockupsInput) -> GenerateMemberMockupsOutput:
        product = (command.product or "").strip()
        artwork_id = (command.artwork_id or "").strip() or None
        provided_url = (command.artwork_url or "").strip() or None
        if not product or (artwork_id is None and provided_url is None):
            raise ValidationError("Missing artworkId/URL or product")
        if not 1 <= command.num_variations <= MAX_VARIATIONS:
            raise ValidationError(f"numVariations must be between 1 and {MAX_VARIATIONS}.")
        if command.aspect_ratio and command.aspect_ratio not in ASPECT_RATIOS:
            raise ValidationError("Unsupported aspectRatio.")
        custom_prompt = validate_custom_prompt(command.custom_prompt)
        aspect_ratio = command.aspect_ratio or DEFAULT_ASPECT_RATIO

        # 1 credit per variation, checked before any paid call
        self._credit_ledger.check_and_reserve(user_id=command.user_id, cost=command.num_variations)

        artwork_url = self._resolve_artwork_url(
            user_id=command.user_id,
            artwork_id=artwork_id,
            provided_url=provided_url,
        )

        # full cost taken before generating, failed variations refunded below
        remaining = self._credit_ledger.deduct(user_id=command.user_id, amount=command.num_variations)

        def _generate(index: int) -> Mockup | GuestError:
            try:
                image = self._image_generation_port.generate_mockup(
                    category=product,
                    artwork_url=artwork_url,
                    custom_prompt=custom_prompt,
                    aspect_ratio=aspect_ratio,
                )
                url = store_generated_image(
                    self._storage_port,
                    image=image,
                    path=(
                        f"users/{command.user_id}/mockups/"
                        f"{storage_stamp()}_{product}_{index}.{image_extension(image.mime_type)}"
                    ),
                )
                return self._studio_port.create_mockup(
                    mockup=Mockup(
                        id=str(uuid4()),
                        user_id=command.user_id,
                        artwork_id=artwork_id,
                        category=product,
                        url=url,
                        variation=index + 1,
                        aspect_ratio=aspect_ratio,
                        custom_prompt=custom_prompt,
                        imported_from_guest=False,
                        created_at=utcnow(),
                    )
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "generate_member_mockups: variation_failed user_id=%s product=%s variation=%s error=%s",
                    command.user_id,
                    product,
                    index + 1,
                    exc,
                )
                return GuestError(category=product, message=str(exc) or "Generation failed")

        outcomes = run_parallel(_generate, list(range(command.num_variations)), max_workers=self._max_workers)
        results = [item for item in outcomes if isinstance(item, Mockup)]
        errors = [item for item in outcomes if isinstance(item, GuestError)]

        if errors:
            remaining = self._credit_ledger.grant(
                user_id=command.user_id,
                amount=len(errors),
                reason="generation_refund",
            )

        logger.info(
            "generate_member_mockups: finished user_id=%s product=%s success=%s errors=%s remaining=%s",
            command.user_id,
            product,
            len(results),
            len(errors),
            remaining,
        )
        return GenerateMemberMockupsOutput(results=results, errors=errors, remaining_credits=remaining)

    def _resolve_artwork_url(self, *, user_id: str, artwork_id: str | None, provided_url: str | None) -> str:
        artwork_url = provided_url
        if artwork_url and is_data_url(artwork_url):
            artwork_url = upload_data_url(
                self._storage_port,
                data_url=artwork_url,
                path=f"users/{user_id}/uploads/{storage_stamp()}_artwork.png",
            )
        elif artwork_url and not self._url_policy.is_allowed(artwork_url):
            raise ValidationError("Invalid artwork URL")

        if not artwork_url:
            artwork = self._studio_port.get_artwork(user_id=user_id, artwork_id=artwork_id or "")
            if artwork is None:
                raise ArtworkNotFoundError("Artwork not found")
            artwork_url = artwork.url

        if not self._url_policy.is_allowed(artwork_url):
            raise ValidationError("Artwork URL is not allowed")
        return artwork_url
