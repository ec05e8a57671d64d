from __future__ import annotations

import json
from typing import Any, Mapping

from mockup_studio.domain.entities.guest_session import GuestError, GuestResult, GuestSession
from mockup_studio.domain.entities.studio import Artwork, Mockup


def _as_str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _json_list(value: Any) -> list[dict]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        value = json.loads(value)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def map_row_to_guest_session(row: Mapping[str, Any]) -> GuestSession:
    results = [
        GuestResult(category=str(item.get("category", "")), url=str(item["url"]))
        for item in _json_list(row.get("results"))
        if item.get("url")
    ]
    errors = [
        GuestError(category=str(item.get("category", "")), message=str(item.get("message") or "Unknown error"))
        for item in _json_list(row.get("errors"))
    ]
    return GuestSession(
        id=str(row["id"]),
        artwork_url=row["artwork_url"],
        results=results,
        errors=errors,
        status=row["status"],
        email=row.get("email"),
        claimed_by=_as_str_or_none(row.get("claimed_by")),
        claimed_at=row.get("claimed_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def dump_guest_results(results: list[GuestResult]) -> str:
    return json.dumps([{"category": item.category, "url": item.url} for item in results])


def dump_guest_errors(errors: list[GuestError]) -> str:
    return json.dumps([{"category": item.category, "message": item.message} for item in errors])


def map_row_to_artwork(row: Mapping[str, Any]) -> Artwork:
    return Artwork(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        url=row["url"],
        name=row["name"],
        created_at=row["created_at"],
    )


def map_row_to_mockup(row: Mapping[str, Any]) -> Mockup:
    variation = row.get("variation")
    return Mockup(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        artwork_id=_as_str_or_none(row.get("artwork_id")),
        category=row["category"],
        url=row["url"],
        variation=int(variation) if variation is not None else None,
        aspect_ratio=row.get("aspect_ratio") or "1:1",
        custom_prompt=row.get("custom_prompt"),
        imported_from_guest=bool(row.get("imported_from_guest")),
        created_at=row["created_at"],
    )
