from __future__ import annotations

import re


_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9:._-]")


def sanitize_fingerprint(value: str | None) -> str:
    raw = (value or "").strip()
    if not raw:
        return "unknown"
    return _UNSAFE_CHARS.sub("_", raw)


def guest_generation_key(fingerprint: str) -> str:
    return f"guest_generate:{fingerprint}"


def guest_email_key(fingerprint: str, day: str) -> str:
    return f"guest_email:{fingerprint}:{day}"
