from __future__ import annotations

from typing import Protocol

from mockup_studio.application.dto.generation import GeneratedImage


class ImageGenerationPort(Protocol):
    def generate_mockup(
        self,
        *,
        category: str,
        artwork_url: str,
        custom_prompt: str | None = None,
        aspect_ratio: str | None = None,
    ) -> GeneratedImage:
        ...
