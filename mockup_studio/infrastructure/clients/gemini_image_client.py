from __future__ import annotations

import base64
import binascii
import logging
import time
from dataclasses import dataclass

import httpx

from mockup_studio.application.dto.generation import GeneratedImage
from mockup_studio.application.ports.image_generation_port import ImageGenerationPort
from mockup_studio.domain.exceptions import GenerationError
from mockup_studio.domain.services.image_url_policy import is_data_url, parse_data_url


logger = logging.getLogger(__name__)


PRODUCT_PROMPTS = {
    "wall": (
        "Ultra-realistic interior design photo of framed wall art in a stylish, modern room. "
        "Dramatic natural lighting casting soft shadows. The provided artwork is the focal point, "
        "framed elegantly on the wall. High-end furniture and decor in the background, cinematic composition."
    ),
    "prints": (
        "High-end lifestyle photography of art prints arranged on a desk or table. Overhead or slight "
        "three-quarter view. Multiple prints clearly on paper, maybe a few overlapping, plus a few small "
        "props (pens, clips, etc.). Still ultra-realistic, nice shallow depth of field. Soft, warm lighting. "
        "The provided artwork is the main focus."
    ),
    "wearable": (
        "GENERATE AN IMAGE OF A REAL PERSON wearing the provided artwork as apparel (t-shirt, hoodie, or hat). "
        "High-end fashion photography style, ultra-realistic, natural lifestyle setting, dramatic lighting. "
        "The artwork MUST be clearly visible on the fabric."
    ),
    "phone": (
        "Ultra-realistic lifestyle shot of a smartphone with a custom case featuring the provided artwork. "
        "Held by a hand or resting on a textured surface (wood, marble). Shallow depth of field, focusing on "
        "the case design. Modern and sleek."
    ),
    "mug": (
        "Cozy lifestyle photography of a ceramic mug featuring the provided artwork. Placed on a wooden table "
        "with coffee beans, a book, or a laptop nearby. Warm, inviting lighting with steam rising. Realistic "
        "ceramic texture and reflections."
    ),
    "tote": (
        "Street-style photography of a person carrying a canvas tote bag with the provided artwork. Natural "
        "outdoor lighting or trendy indoor setting. The bag is the focus, showing realistic fabric texture and "
        "weight. Casual and stylish."
    ),
    "pillow": (
        "Interior design shot of a decorative throw pillow on a plush sofa. The provided artwork is printed on "
        "the fabric. Cozy, inviting atmosphere with soft lighting and complementary decor. High-quality textile "
        "rendering."
    ),
    "notebook": (
        "Creative workspace photography of a notebook with the provided artwork on the cover. Surrounded by "
        "artist tools, pens, or a laptop. Top-down or angled view with good lighting to show the cover texture. "
        "Inspiring and organized."
    ),
    "patch": (
        "Close-up product photo of an embroidered patch with the provided artwork stitched into fabric. The "
        "patch is lying on or pinned to denim or canvas. Soft, directional lighting that shows stitch texture "
        "and thread sheen. Modern, clean, realistic product photography."
    ),
}

ASPECT_RATIO_PROMPTS = {
    "1:1": "Square aspect ratio.",
    "16:9": "Wide landscape 16:9 aspect ratio.",
    "9:16": "Tall portrait 9:16 aspect ratio.",
    "4:3": "Standard landscape 4:3 aspect ratio.",
    "3:4": "Standard portrait 3:4 aspect ratio.",
}

IMAGE_ONLY_SUFFIX = (
    "MANDATORY: Output ONLY the generated image. Do not provide descriptions or conversational text."
)

MAX_ARTWORK_BYTES = 10 * 1024 * 1024


def build_prompt(*, category: str, custom_prompt: str | None = None, aspect_ratio: str | None = None) -> str:
    base = PRODUCT_PROMPTS.get(category) or (
        f"Professional product photography of a {category} featuring the provided artwork. "
        "Clean, modern, high quality, photorealistic, studio lighting."
    )
    parts = [base]
    ratio = ASPECT_RATIO_PROMPTS.get(aspect_ratio or "")
    if ratio:
        parts.append(ratio)
    if custom_prompt and custom_prompt.strip():
        parts.append(f"USER REQUEST: {custom_prompt.strip()}")
    parts.append(IMAGE_ONLY_SUFFIX)
    return " ".join(parts)


class _ModelNotFoundError(RuntimeError):
    pass


@dataclass(frozen=True)
class GeminiImageClientSettings:
    api_key: str
    model: str
    api_base: str
    timeout_seconds: float
    max_retries: int
    artwork_timeout_seconds: float = 15.0
    max_artwork_bytes: int = MAX_ARTWORK_BYTES


class GeminiImageClient(ImageGenerationPort):
    def __init__(self, settings: GeminiImageClientSettings):
        self._settings = settings

    def generate_mockup(
        self,
        *,
        category: str,
        artwork_url: str,
        custom_prompt: str | None = None,
        aspect_ratio: str | None = None,
    ) -> GeneratedImage:
        mime_type, artwork = self._load_artwork(artwork_url)
        prompt = build_prompt(category=category, custom_prompt=custom_prompt, aspect_ratio=aspect_ratio)
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(artwork).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }

        try:
            payload = self._post_generate(prefix="models", body=body)
        except _ModelNotFoundError:
            logger.warning("gemini_image_client: model_not_found prefix=models model=%s retry=tunedModels", self._settings.model)
            try:
                payload = self._post_generate(prefix="tunedModels", body=body)
            except _ModelNotFoundError as exc:
                raise GenerationError(f"Image model not found: {self._settings.model}") from exc

        image = parse_generated_image(payload)
        logger.info("gemini_image_client: generated category=%s bytes=%s", category, len(image.payload))
        return image

    def _build_url(self, prefix: str) -> str:
        base = self._settings.api_base.rstrip("/")
        return f"{base}/v1beta/{prefix}/{self._settings.model}:generateContent"

    def _post_generate(self, *, prefix: str, body: dict) -> dict:
        url = self._build_url(prefix)
        attempts = max(1, self._settings.max_retries)
        delay = 2.0
        last_exc: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                with httpx.Client(timeout=self._settings.timeout_seconds) as client:
                    response = client.post(
                        url,
                        json=body,
                        headers={"x-goog-api-key": self._settings.api_key},
                    )
                if response.status_code == 404:
                    raise _ModelNotFoundError(url)
                if 400 <= response.status_code < 500:
                    raise GenerationError(
                        f"Gemini API Error: {response.status_code} {response.text[:200]}"
                    )
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as exc:
                last_exc = exc
                if attempt == attempts:
                    break
                logger.warning(
                    "gemini_image_client: generate_retry prefix=%s attempt=%s/%s error=%s",
                    prefix,
                    attempt,
                    attempts,
                    exc,
                )
                time.sleep(delay)
                delay *= 2

        raise GenerationError(f"Image generation failed after retries: {last_exc}") from last_exc

    def _load_artwork(self, artwork_url: str) -> tuple[str, bytes]:
        if is_data_url(artwork_url):
            return parse_data_url(artwork_url)

        limit = self._settings.max_artwork_bytes
        try:
            with httpx.Client(timeout=self._settings.artwork_timeout_seconds, follow_redirects=False) as client:
                with client.stream("GET", artwork_url) as response:
                    # redirect targets are outside the host allowlist
                    if response.status_code >= 300:
                        raise GenerationError(f"Failed to fetch artwork: {response.status_code}")
                    declared = response.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > limit:
                        raise GenerationError("Artwork too large (max 10MB)")
                    chunks: list[bytes] = []
                    total = 0
                    for chunk in response.iter_bytes():
                        total += len(chunk)
                        if total > limit:
                            raise GenerationError("Artwork too large (max 10MB)")
                        chunks.append(chunk)
                    mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        except httpx.TimeoutException as exc:
            raise GenerationError("Artwork download timed out") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Failed to fetch artwork: {exc}") from exc

        return mime_type or "image/jpeg", b"".join(chunks)


def parse_generated_image(payload: dict) -> GeneratedImage:
    candidates = payload.get("candidates") or []
    if not candidates:
        reason = (payload.get("promptFeedback") or {}).get("blockReason") or "unknown"
        raise GenerationError(f"AI refused to generate image. Reason: {reason}")

    candidate = candidates[0] or {}
    parts = (candidate.get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inline_data") or part.get("inlineData")
        if not inline or not inline.get("data"):
            continue
        mime_type = inline.get("mime_type") or inline.get("mimeType") or "image/png"
        try:
            image_bytes = base64.b64decode(inline["data"])
        except (binascii.Error, ValueError) as exc:
            raise GenerationError("AI returned malformed image data.") from exc
        return GeneratedImage(mime_type=mime_type, payload=image_bytes)

    snippet = next((part["text"][:100] for part in parts if part.get("text")), "none")
    raise GenerationError(f"AI returned text but no image. Snippet: {snippet}")
