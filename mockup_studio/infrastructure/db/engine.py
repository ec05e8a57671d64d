from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def normalize_dsn(dsn: str) -> str:
    # psycopg 3 is the installed driver; bare postgres URLs would select psycopg2.
    for prefix in ("postgresql://", "postgres://"):
        if dsn.startswith(prefix):
            return "postgresql+psycopg://" + dsn[len(prefix):]
    return dsn


@lru_cache(maxsize=4)
def get_engine(dsn: str):
    return create_engine(normalize_dsn(dsn), future=True, pool_pre_ping=True)


def create_schema(engine) -> None:
    from mockup_studio.infrastructure.db.models import accounts, studio  # noqa: F401

    Base.metadata.create_all(engine)
