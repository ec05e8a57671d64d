from __future__ import annotations

from datetime import datetime

from sqlalchemy import text

from mockup_studio.application.ports.studio_port import StudioPort
from mockup_studio.domain.entities.guest_session import GuestError, GuestResult
from mockup_studio.domain.entities.studio import Artwork, Mockup
from mockup_studio.infrastructure.db.mappers.studio_mapper import (
    dump_guest_errors,
    dump_guest_results,
    map_row_to_artwork,
    map_row_to_guest_session,
    map_row_to_mockup,
)

from .base import SqlRepository


_GUEST_SESSION_COLUMNS = """
    id, artwork_url, results, errors, status, email, claimed_by, claimed_at, created_at, updated_at
"""

_MOCKUP_COLUMNS = """
    id, user_id, artwork_id, category, url, variation, aspect_ratio, custom_prompt,
    imported_from_guest, created_at
"""


class SqlStudioRepository(SqlRepository, StudioPort):
    def create_guest_session(self, *, session_id: str, artwork_url: str, now: datetime):
        sql = f"""
            INSERT INTO public.guest_sessions (
                id, artwork_url, results, errors, status, created_at, updated_at
            ) VALUES (
                :id, :artwork_url, '[]'::jsonb, '[]'::jsonb, 'created', :now, :now
            )
            RETURNING {_GUEST_SESSION_COLUMNS}
        """
        with self._write() as conn:
            row = conn.execute(
                text(sql),
                {"id": session_id, "artwork_url": artwork_url, "now": now},
            ).mappings().one()
        return map_row_to_guest_session(row)

    def _fetch_guest_session(self, *, session_id: str, for_update: bool):
        sql = f"""
            SELECT {_GUEST_SESSION_COLUMNS}
            FROM public.guest_sessions
            WHERE id = :session_id
            LIMIT 1
            {"FOR UPDATE" if for_update else ""}
        """
        with self._read() as conn:
            row = conn.execute(text(sql), {"session_id": session_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_guest_session(row)

    def get_guest_session(self, *, session_id: str):
        return self._fetch_guest_session(session_id=session_id, for_update=False)

    def lock_guest_session(self, *, session_id: str):
        return self._fetch_guest_session(session_id=session_id, for_update=True)

    def save_guest_session_results(
        self,
        *,
        session_id: str,
        results: list[GuestResult],
        errors: list[GuestError],
        status: str,
        now: datetime,
    ) -> None:
        sql = """
            UPDATE public.guest_sessions
            SET results = CAST(:results AS jsonb),
                errors = CAST(:errors AS jsonb),
                status = :status,
                updated_at = :now
            WHERE id = :session_id
              AND claimed_by IS NULL
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "session_id": session_id,
                    "results": dump_guest_results(results),
                    "errors": dump_guest_errors(errors),
                    "status": status,
                    "now": now,
                },
            )

    def update_guest_session_email(self, *, session_id: str, email: str, status: str, now: datetime) -> None:
        sql = """
            UPDATE public.guest_sessions
            SET email = :email,
                status = :status,
                updated_at = :now
            WHERE id = :session_id
              AND claimed_by IS NULL
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {"session_id": session_id, "email": email, "status": status, "now": now},
            )

    def update_guest_session_status(self, *, session_id: str, status: str, now: datetime) -> None:
        sql = """
            UPDATE public.guest_sessions
            SET status = :status,
                updated_at = :now
            WHERE id = :session_id
              AND claimed_by IS NULL
        """
        with self._write() as conn:
            conn.execute(text(sql), {"session_id": session_id, "status": status, "now": now})

    def mark_guest_session_claimed(self, *, session_id: str, user_id: str, claimed_at: datetime) -> None:
        sql = """
            UPDATE public.guest_sessions
            SET claimed_by = :user_id,
                claimed_at = :claimed_at,
                updated_at = :claimed_at
            WHERE id = :session_id
              AND claimed_by IS NULL
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {"session_id": session_id, "user_id": user_id, "claimed_at": claimed_at},
            )

    def delete_guest_sessions_by_email(self, *, email: str) -> int:
        sql = """
            DELETE FROM public.guest_sessions
            WHERE lower(email) = :email
        """
        with self._write() as conn:
            result = conn.execute(text(sql), {"email": email.strip().lower()})
        return int(result.rowcount or 0)

    def create_artwork(self, *, artwork: Artwork):
        sql = """
            INSERT INTO public.artworks (id, user_id, url, name, created_at)
            VALUES (:id, :user_id, :url, :name, :created_at)
            RETURNING id, user_id, url, name, created_at
        """
        with self._write() as conn:
            row = conn.execute(
                text(sql),
                {
                    "id": artwork.id,
                    "user_id": artwork.user_id,
                    "url": artwork.url,
                    "name": artwork.name,
                    "created_at": artwork.created_at,
                },
            ).mappings().one()
        return map_row_to_artwork(row)

    def get_artwork(self, *, user_id: str, artwork_id: str):
        sql = """
            SELECT id, user_id, url, name, created_at
            FROM public.artworks
            WHERE id = :artwork_id
              AND user_id = :user_id
            LIMIT 1
        """
        with self._read() as conn:
            row = conn.execute(
                text(sql),
                {"user_id": user_id, "artwork_id": artwork_id},
            ).mappings().first()
        if row is None:
            return None
        return map_row_to_artwork(row)

    def create_mockup(self, *, mockup: Mockup):
        sql = f"""
            INSERT INTO public.mockups (
                id, user_id, artwork_id, category, url, variation, aspect_ratio,
                custom_prompt, imported_from_guest, created_at
            ) VALUES (
                :id, :user_id, :artwork_id, :category, :url, :variation, :aspect_ratio,
                :custom_prompt, :imported_from_guest, :created_at
            )
            RETURNING {_MOCKUP_COLUMNS}
        """
        with self._write() as conn:
            row = conn.execute(
                text(sql),
                {
                    "id": mockup.id,
                    "user_id": mockup.user_id,
                    "artwork_id": mockup.artwork_id,
                    "category": mockup.category,
                    "url": mockup.url,
                    "variation": mockup.variation,
                    "aspect_ratio": mockup.aspect_ratio,
                    "custom_prompt": mockup.custom_prompt,
                    "imported_from_guest": mockup.imported_from_guest,
                    "created_at": mockup.created_at,
                },
            ).mappings().one()
        return map_row_to_mockup(row)

    def get_mockup(self, *, user_id: str, mockup_id: str):
        sql = f"""
            SELECT {_MOCKUP_COLUMNS}
            FROM public.mockups
            WHERE id = :mockup_id
              AND user_id = :user_id
            LIMIT 1
        """
        with self._read() as conn:
            row = conn.execute(
                text(sql),
                {"user_id": user_id, "mockup_id": mockup_id},
            ).mappings().first()
        if row is None:
            return None
        return map_row_to_mockup(row)

    def update_mockup_image(
        self,
        *,
        user_id: str,
        mockup_id: str,
        url: str,
        custom_prompt: str | None,
    ):
        sql = f"""
            UPDATE public.mockups
            SET url = :url,
                custom_prompt = :custom_prompt
            WHERE id = :mockup_id
              AND user_id = :user_id
            RETURNING {_MOCKUP_COLUMNS}
        """
        with self._write() as conn:
            row = conn.execute(
                text(sql),
                {
                    "user_id": user_id,
                    "mockup_id": mockup_id,
                    "url": url,
                    "custom_prompt": custom_prompt,
                },
            ).mappings().first()
        if row is None:
            return None
        return map_row_to_mockup(row)

    def delete_user_content(self, *, user_id: str) -> int:
        mockups_sql = """
            DELETE FROM public.mockups
            WHERE user_id = :user_id
        """
        artworks_sql = """
            DELETE FROM public.artworks
            WHERE user_id = :user_id
        """
        with self._write() as conn:
            mockups = conn.execute(text(mockups_sql), {"user_id": user_id}).rowcount or 0
            artworks = conn.execute(text(artworks_sql), {"user_id": user_id}).rowcount or 0
        return int(mockups) + int(artworks)
