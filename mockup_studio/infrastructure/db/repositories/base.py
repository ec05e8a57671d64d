from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar


TResult = TypeVar("TResult")


class SqlRepository:
    """Engine-backed repository that can also be rebound to an open transaction.

    Outside a transaction every read uses ``engine.connect()`` and every write
    uses its own ``engine.begin()``. Inside ``execute_in_transaction`` all calls
    share the same connection, so row locks taken with ``FOR UPDATE`` hold until
    the callback returns.
    """

    def __init__(self, engine, *, connection=None):
        self._engine = engine
        self._connection = connection

    def _bind(self, connection):
        return type(self)(self._engine, connection=connection)

    def execute_in_transaction(self, fn: Callable[..., TResult]) -> TResult:
        if self._connection is not None:
            return fn(self)
        with self._engine.begin() as conn:
            return fn(self._bind(conn))

    @contextmanager
    def _read(self) -> Iterator:
        if self._connection is not None:
            yield self._connection
            return
        with self._engine.connect() as conn:
            yield conn

    @contextmanager
    def _write(self) -> Iterator:
        if self._connection is not None:
            yield self._connection
            return
        with self._engine.begin() as conn:
            yield conn
