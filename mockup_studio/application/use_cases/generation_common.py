from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

from mockup_studio.application.dto.generation import GeneratedImage
from mockup_studio.application.ports.storage_port import StoragePort
from mockup_studio.domain.services.image_url_policy import parse_data_url


TItem = TypeVar("TItem")
TResult = TypeVar("TResult")

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


def image_extension(mime_type: str) -> str:
    return _EXTENSIONS.get(mime_type.lower(), "png")


def upload_data_url(storage_port: StoragePort, *, data_url: str, path: str) -> str:
    mime_type, payload = parse_data_url(data_url)
    return storage_port.upload_bytes(path=path, payload=payload, content_type=mime_type)


def store_generated_image(storage_port: StoragePort, *, image: GeneratedImage, path: str) -> str:
    return storage_port.upload_bytes(path=path, payload=image.payload, content_type=image.mime_type)


def run_parallel(
    fn: Callable[[TItem], TResult],
    items: Sequence[TItem],
    *,
    max_workers: int,
) -> list[TResult]:
    """Run ``fn`` over ``items`` concurrently, preserving input order."""
    if not items:
        return []
    workers = max(1, min(max_workers, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(fn, items))
