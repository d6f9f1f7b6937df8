"""Database utilities and psycopg2 helpers for shadow table access."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
from psycopg2 import Error, OperationalError, errors, sql
from psycopg2.extras import RealDictCursor

from ..constants import ISOLATION_LEVELS
from .schema import TableSchema
from .statements import build_shadow_read_statement

if TYPE_CHECKING:  # pragma: no cover - import-time helper only
    from cdc_ordering.config import Settings

logger = logging.getLogger(__name__)


class _ExecuteResult:
    def __init__(self, cursor):
        self._cursor = cursor
        self._rows: Optional[list] = None
        self._index = 0
        self._load_rows()

    def fetchone(self):
        rows = self._load_rows()
        if self._index >= len(rows):
            return None
        row = rows[self._index]
        self._index += 1
        return row

    def fetchall(self):
        rows = self._load_rows()
        remaining = rows[self._index :]
        self._index = len(rows)
        return remaining

    def __iter__(self) -> Iterator:
        rows = self._load_rows()
        start = self._index
        self._index = len(rows)
        return iter(rows[start:])

    def _load_rows(self) -> list:
        if self._rows is None:
            if self._cursor.description is not None:
                self._rows = list(self._cursor.fetchall())
            else:
                self._rows = []
            self._cursor.close()
        return self._rows


class TransactionScope:
    """Statement execution bound to one open transaction.

    Every read and write issued through a scope runs inside the transaction
    that produced it, so a read, the admission decision and the follow-up
    write share one isolation snapshot and one set of row locks.
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    def execute(self, statement: Any, params: Optional[Sequence[Any]] = None) -> int:
        with self._connection.cursor() as cur:
            cur.execute(statement, params)
            return cur.rowcount

    def execute_query(
        self, statement: Any, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        with self._connection.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(statement, params)
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def read_row(
        self,
        table: str,
        key: Sequence[Any],
        columns: Sequence[str],
        *,
        schema: TableSchema,
    ) -> Optional[Dict[str, Any]]:
        """Keyed single-row read without a lock hint."""
        # TODO: accept a lock option here and retire the FOR UPDATE statement
        # path in sequencing.shadow_reader once callers no longer select it.
        statement, params = build_shadow_read_statement(
            table, columns, key, schema, lock=False
        )
        rows = self.execute_query(statement, params)
        return rows[0] if rows else None


class _Transaction:
    """Runs a block in one transaction, committing on success."""

    def __init__(self, connection: Any, isolation_level: Optional[str] = None):
        if isolation_level is not None and isolation_level.upper() not in ISOLATION_LEVELS:
            raise ValueError(f"unsupported isolation level: {isolation_level}")
        self._connection = connection
        self._isolation_level = isolation_level
        self._restore_autocommit = False

    def __enter__(self) -> TransactionScope:
        if self._connection.autocommit:
            self._connection.autocommit = False
            self._restore_autocommit = True
        scope = TransactionScope(self._connection)
        if self._isolation_level is not None:
            try:
                scope.execute(
                    sql.SQL(
                        f"SET TRANSACTION ISOLATION LEVEL {self._isolation_level.upper()}"
                    )
                )
            except BaseException:
                self._finish(commit=False)
                raise
        return scope

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            logger.debug("rolling back transaction after %s", exc_type.__name__)
        self._finish(commit=exc_type is None)
        return False

    def _finish(self, commit: bool) -> None:
        try:
            if commit:
                self._connection.commit()
            else:
                self._connection.rollback()
        finally:
            if self._restore_autocommit:
                self._connection.autocommit = True


class Connection(psycopg2.extensions.connection):
    """psycopg2 connection subclass returning dict rows and scoped transactions."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.autocommit = True

    def transaction(self, isolation_level: Optional[str] = None) -> _Transaction:
        return _Transaction(self, isolation_level)

    def cursor(self, *args, **kwargs):
        kwargs.setdefault("cursor_factory", RealDictCursor)
        return super().cursor(*args, **kwargs)

    def execute(
        self, query: Any, params: Optional[Sequence[Any]] = None
    ) -> _ExecuteResult:
        cursor = self.cursor()
        cursor.execute(query, params)
        return _ExecuteResult(cursor)


def connect(*args, **kwargs) -> Connection:
    """Create a Connection instance using psycopg2."""

    kwargs.setdefault("connection_factory", Connection)
    return psycopg2.connect(*args, **kwargs)


def connect_from_settings(settings: "Settings") -> Connection:
    """Create a psycopg2 connection using the provided settings."""

    conn = connect(
        host=settings.db_host,
        port=settings.db_port,
        dbname=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
        options=f"-c search_path={settings.db_schema},public",
    )
    return conn


__all__ = [
    "Connection",
    "Error",
    "ISOLATION_LEVELS",
    "OperationalError",
    "TransactionScope",
    "connect",
    "connect_from_settings",
    "errors",
    "sql",
]
