from __future__ import annotations

import base64
import binascii
import re
from urllib.parse import urlparse

from mockup_studio.domain.exceptions import ValidationError


FIREBASE_STORAGE_HOST = "firebasestorage.googleapis.com"
GCS_HOST = "storage.googleapis.com"

_DATA_URL_RE = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)


def is_data_url(value: str) -> bool:
    return value.startswith("data:")


def parse_data_url(value: str) -> tuple[str, bytes]:
    match = _DATA_URL_RE.match(value.strip())
    if match is None:
        raise ValidationError("Invalid data URL.")
    mime_type, encoded = match.group(1), match.group(2)
    try:
        payload = base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Invalid data URL.") from exc
    if not payload:
        raise ValidationError("Invalid data URL.")
    return mime_type, payload


def build_data_url(*, mime_type: str, payload: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


class ImageUrlPolicy:
    """Allow-list for image URLs the backend is willing to fetch."""

    def __init__(self, *, bucket: str, extra_hosts: tuple[str, ...] = ()):
        self._bucket = bucket.strip().lower()
        hosts = {FIREBASE_STORAGE_HOST, GCS_HOST}
        if self._bucket:
            hosts.add(self._bucket)
        hosts.update(host.strip().lower() for host in extra_hosts if host.strip())
        self._hosts = frozenset(hosts)

    def is_allowed(self, url: str) -> bool:
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        if parsed.scheme != "https":
            return False

        host = (parsed.hostname or "").lower()
        if host not in self._hosts:
            return False

        # shared hosts must point at our bucket
        if host == FIREBASE_STORAGE_HOST:
            return bool(self._bucket) and f"/v0/b/{self._bucket}/" in parsed.path.lower()
        if host == GCS_HOST:
            return bool(self._bucket) and parsed.path.lower().startswith(f"/{self._bucket}/")
        return True

    def is_acceptable_input(self, value: str) -> bool:
        return is_data_url(value) or self.is_allowed(value)
