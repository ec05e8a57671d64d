from __future__ import annotations

from typing import Protocol


class StoragePort(Protocol):
    def upload_bytes(self, *, path: str, payload: bytes, content_type: str) -> str:
        ...

    def delete_prefix(self, *, prefix: str) -> int:
        ...
