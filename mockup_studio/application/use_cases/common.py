from __future__ import annotations

from datetime import datetime, timedelta, timezone


ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def emails_match(left: str | None, right: str | None) -> bool:
    return normalize_email(left) == normalize_email(right)


def storage_stamp(now: datetime | None = None) -> int:
    moment = now or utcnow()
    return int(moment.timestamp() * 1000)
