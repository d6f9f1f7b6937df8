"""Shadow table lookups of the last applied sequence for a primary key.

Two readers share one interface. :class:`DirectShadowTableReader` uses the
scope's keyed ``read_row``; :class:`LockingShadowTableReader` issues a
``SELECT ... FOR UPDATE`` statement so concurrent appliers racing on the same
key serialize on the row lock. The statement path exists only because the
keyed read has no lock option; once it gains one the two readers collapse
into a single implementation and callers of :func:`build_shadow_table_reader`
stay unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from ..db.schema import TableSchema
from ..db.statements import build_shadow_read_statement
from .codec import SequenceCodec
from .sequence import ChangeEventSequence

logger = logging.getLogger(__name__)


class ShadowTableReadError(Exception):
    """Raised when reading a shadow row fails; carries the underlying cause."""

    def __init__(self, message: str, cause: BaseException) -> None:
        super().__init__(message)
        self.cause = cause


class ShadowTableScope(Protocol):
    """The part of a transaction scope the readers rely on."""

    def execute_query(
        self, statement: Any, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]: ...

    def read_row(
        self,
        table: str,
        key: Sequence[Any],
        columns: Sequence[str],
        *,
        schema: TableSchema,
    ) -> Optional[Dict[str, Any]]: ...


class ShadowTableReader(Protocol):
    def read(
        self,
        scope: ShadowTableScope,
        shadow_table: str,
        schema: TableSchema,
        primary_key: Sequence[Any],
        columns: Sequence[str],
    ) -> Optional[Mapping[str, Any]]: ...


class _BaseShadowTableReader:
    locking = False

    def read(
        self,
        scope: ShadowTableScope,
        shadow_table: str,
        schema: TableSchema,
        primary_key: Sequence[Any],
        columns: Sequence[str],
    ) -> Optional[Mapping[str, Any]]:
        """Return the shadow row for ``primary_key`` or ``None`` if there is none."""
        try:
            return self._fetch(scope, shadow_table, schema, primary_key, columns)
        except Exception as exc:  # noqa: BLE001 - surfaced as a single failure kind
            raise ShadowTableReadError(
                f"shadow table read failed for {shadow_table} "
                f"key {list(primary_key)!r}: {exc}",
                exc,
            ) from exc

    def _fetch(
        self,
        scope: ShadowTableScope,
        shadow_table: str,
        schema: TableSchema,
        primary_key: Sequence[Any],
        columns: Sequence[str],
    ) -> Optional[Mapping[str, Any]]:
        raise NotImplementedError


class DirectShadowTableReader(_BaseShadowTableReader):
    """Keyed row read without a lock hint."""

    def _fetch(self, scope, shadow_table, schema, primary_key, columns):
        return scope.read_row(shadow_table, primary_key, columns, schema=schema)


class LockingShadowTableReader(_BaseShadowTableReader):
    """Keyed read through a ``FOR UPDATE`` statement."""

    locking = True

    def _fetch(self, scope, shadow_table, schema, primary_key, columns):
        statement, params = build_shadow_read_statement(
            shadow_table, columns, primary_key, schema, lock=True
        )
        rows = scope.execute_query(statement, params)
        if not rows:
            return None
        return rows[0]


def build_shadow_table_reader(use_locking_read: bool) -> ShadowTableReader:
    if use_locking_read:
        return LockingShadowTableReader()
    return DirectShadowTableReader()


def read_shadow_sequence(
    scope: ShadowTableScope,
    codec: SequenceCodec,
    shadow_table: str,
    schema: TableSchema,
    primary_key: Sequence[Any],
    *,
    use_locking_read: bool = True,
    reader: Optional[ShadowTableReader] = None,
) -> Optional[ChangeEventSequence]:
    """Read and decode the last applied sequence for ``primary_key``.

    ``None`` means no event has been applied to the key yet.
    """
    reader = reader or build_shadow_table_reader(use_locking_read)
    row = reader.read(scope, shadow_table, schema, primary_key, codec.column_names)
    if row is None:
        logger.debug("no shadow row in %s for key %r", shadow_table, list(primary_key))
        return None
    try:
        return codec.from_shadow_row(row)
    except (KeyError, TypeError, ValueError) as exc:
        raise ShadowTableReadError(
            f"shadow row in {shadow_table} for key {list(primary_key)!r} "
            f"could not be decoded: {exc}",
            exc,
        ) from exc


__all__ = [
    "DirectShadowTableReader",
    "LockingShadowTableReader",
    "ShadowTableReadError",
    "ShadowTableReader",
    "ShadowTableScope",
    "build_shadow_table_reader",
    "read_shadow_sequence",
]
