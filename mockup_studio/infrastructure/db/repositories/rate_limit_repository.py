from __future__ import annotations

from datetime import datetime

from sqlalchemy import text

from mockup_studio.application.ports.rate_limit_port import RateLimitPort
from mockup_studio.domain.entities.rate_limit import RateLimitCounter
from mockup_studio.infrastructure.db.mappers.accounts_mapper import map_row_to_rate_limit_counter

from .base import SqlRepository


class SqlRateLimitRepository(SqlRepository, RateLimitPort):
    def lock_counter(self, *, key: str, now: datetime):
        insert_sql = """
            INSERT INTO public.rate_limits (key, count, window_start)
            VALUES (:key, 0, :now)
            ON CONFLICT (key) DO NOTHING
        """
        select_sql = """
            SELECT key, count, window_start
            FROM public.rate_limits
            WHERE key = :key
            FOR UPDATE
        """
        with self._write() as conn:
            conn.execute(text(insert_sql), {"key": key, "now": now})
            row = conn.execute(text(select_sql), {"key": key}).mappings().first()
        if row is None:
            return None
        return map_row_to_rate_limit_counter(row)

    def save_counter(self, *, counter: RateLimitCounter) -> None:
        sql = """
            UPDATE public.rate_limits
            SET count = :count,
                window_start = :window_start
            WHERE key = :key
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "key": counter.key,
                    "count": counter.count,
                    "window_start": counter.window_start,
                },
            )

    def delete_counters_older_than(self, *, cutoff: datetime) -> int:
        sql = """
            DELETE FROM public.rate_limits
            WHERE window_start < :cutoff
        """
        with self._write() as conn:
            result = conn.execute(text(sql), {"cutoff": cutoff})
        return int(result.rowcount or 0)
