from __future__ import annotations

import logging
import time

from mockup_studio.application.dto.generation import CategoryOutcome
from mockup_studio.application.dto.guest import GenerateGuestMockupsInput, GenerateGuestMockupsOutput
from mockup_studio.application.ports.image_generation_port import ImageGenerationPort
from mockup_studio.application.ports.storage_port import StoragePort
from mockup_studio.domain.entities.guest_session import GuestError, GuestResult
from mockup_studio.domain.exceptions import ValidationError
from mockup_studio.domain.services.fingerprint import guest_generation_key
from mockup_studio.domain.services.image_url_policy import ImageUrlPolicy, is_data_url

from .common import ONE_DAY, storage_stamp
from .generation_common import image_extension, run_parallel, store_generated_image, upload_data_url
from .guest_sessions import GuestSessionManager, new_session_id
from .rate_limiter import RateLimiter


logger = logging.getLogger(__name__)

GUEST_CATEGORIES: tuple[str, ...] = ("wall", "prints", "wearable", "phone")

GUEST_LIMIT_MESSAGE = (
    "You've reached the daily limit for free mockups. "
    "Please try again tomorrow or sign up for a membership!"
)


class GenerateGuestMockupsUseCase:
    def __init__(
        self,
        *,
        session_manager: GuestSessionManager,
        rate_limiter: RateLimiter,
        image_generation_port: ImageGenerationPort,
        storage_port: StoragePort,
        url_policy: ImageUrlPolicy,
        daily_limit: int = 10,
        max_workers: int = 4,
    ):
        self._session_manager = session_manager
        self._rate_limiter = rate_limiter
        self._image_generation_port = image_generation_port
        self._storage_port = storage_port
        self._url_policy = url_policy
        self._daily_limit = daily_limit
        self._max_workers = max_workers

    def execute(self, command: GenerateGuestMockupsInput) -> GenerateGuestMockupsOutput:
        artwork_url = (command.artwork_url or "").strip()
        if not artwork_url:
            raise ValidationError("Missing artworkUrl")
        if not self._url_policy.is_acceptable_input(artwork_url):
            raise ValidationError("Invalid artwork URL. Upload the image directly.")

        self._rate_limiter.enforce(
            key=guest_generation_key(command.fingerprint),
            limit=self._daily_limit,
            window=ONE_DAY,
            message=GUEST_LIMIT_MESSAGE,
        )

        session_id = new_session_id()
        if is_data_url(artwork_url):
            artwork_url = upload_data_url(
                self._storage_port,
                data_url=artwork_url,
                path=f"guest_sessions/{session_id}/original_artwork_{storage_stamp()}.png",
            )
        self._session_manager.create_session(session_id=session_id, artwork_url=artwork_url)

        started = time.monotonic()

        def _generate(category: str) -> CategoryOutcome:
            try:
                image = self._image_generation_port.generate_mockup(category=category, artwork_url=artwork_url)
                url = store_generated_image(
                    self._storage_port,
                    image=image,
                    path=f"guest_sessions/{session_id}/{category}_{storage_stamp()}.{image_extension(image.mime_type)}",
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "generate_guest_mockups: category_failed session_id=%s category=%s error=%s",
                    session_id,
                    category,
                    exc,
                )
                return CategoryOutcome(category=category, url=None, error=str(exc) or "Unknown error")
            return CategoryOutcome(category=category, url=url, error=None)

        outcomes = run_parallel(_generate, GUEST_CATEGORIES, max_workers=self._max_workers)

        results = [GuestResult(category=item.category, url=item.url) for item in outcomes if item.url]
        errors = [
            GuestError(category=item.category, message=item.error or "Unknown error")
            for item in outcomes
            if not item.url
        ]
        logger.info(
            "generate_guest_mockups: finished session_id=%s success=%s errors=%s elapsed_ms=%s",
            session_id,
            len(results),
            len(errors),
            int((time.monotonic() - started) * 1000),
        )

        self._session_manager.record_results(session_id=session_id, results=results, errors=errors)
        return GenerateGuestMockupsOutput(session_id=session_id, results=results, errors=errors)
