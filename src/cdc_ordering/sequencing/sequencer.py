"""Per-event read/compare/write orchestration against the shadow table.

The shadow read, the admission decision and both writes (target row and
shadow row) run in one transaction. A locking read on a key that has no
shadow row yet takes no lock, so two appliers can both admit a first event
for the same key. The shadow write therefore guards itself: the first row is
inserted only if absent, later rows are overwritten only while they still
hold the sequence that was read. A lost race raises
:class:`ShadowTableConflictError` and rolls back, and the caller admits the
event again. :meth:`ChangeEventSequencer.process` opens the transaction;
callers of :meth:`admit` and :meth:`record` pass their own scope and must
pass the sequence :meth:`admit` read on to :meth:`record`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from psycopg2 import Error

from ..constants import DEFAULT_SHADOW_TABLE_PREFIX, MYSQL_SOURCE_TYPE
from ..db.schema import TableSchema, shadow_table_schema
from ..db.statements import (
    build_shadow_insert_statement,
    build_shadow_update_statement,
)
from .admission import should_apply
from .codec import SequenceCodec, codec_for_event, get_codec
from .sequence import ChangeEventSequence
from .shadow_reader import (
    ShadowTableReader,
    build_shadow_table_reader,
    read_shadow_sequence,
)

logger = logging.getLogger(__name__)

EventWriter = Callable[[Any], None]


class ShadowTableWriteError(Exception):
    """Raised when persisting a shadow row fails."""


class ShadowTableConflictError(ShadowTableWriteError):
    """Raised when the shadow row changed between the read and the write."""


class AdmissionMetrics:
    """Counters for admission outcomes."""

    def __init__(self) -> None:
        self.counters: Dict[str, int] = {}

    def inc(self, name: str, value: int = 1) -> None:
        self.counters[name] = self.counters.get(name, 0) + value

    def snapshot(self) -> Dict[str, int]:
        return dict(self.counters)


@dataclass(frozen=True)
class AdmissionResult:
    apply: bool
    incoming: ChangeEventSequence
    stored: Optional[ChangeEventSequence]
    shadow_table: str


class ChangeEventSequencer:
    """Decides whether change events are newer than what a key already holds."""

    def __init__(
        self,
        *,
        default_source_type: str = MYSQL_SOURCE_TYPE,
        shadow_table_prefix: str = DEFAULT_SHADOW_TABLE_PREFIX,
        use_locking_read: bool = True,
        isolation_level: Optional[str] = None,
        reader: Optional[ShadowTableReader] = None,
        metrics: Optional[AdmissionMetrics] = None,
    ) -> None:
        get_codec(default_source_type)
        self._default_source_type = default_source_type
        self._shadow_table_prefix = shadow_table_prefix
        self._isolation_level = isolation_level
        self._reader = reader or build_shadow_table_reader(use_locking_read)
        self._metrics = metrics or AdmissionMetrics()
        self._shadow_schemas: Dict[Tuple[Optional[str], str, str], TableSchema] = {}

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "ChangeEventSequencer":
        return cls(
            default_source_type=settings.source_type,
            shadow_table_prefix=settings.shadow_table_prefix,
            use_locking_read=settings.use_locking_read,
            isolation_level=settings.isolation_level,
            **kwargs,
        )

    @property
    def metrics(self) -> AdmissionMetrics:
        return self._metrics

    def shadow_schema(self, table: TableSchema, codec: SequenceCodec) -> TableSchema:
        cache_key = (table.schema_name, table.name, codec.source_type)
        schema = self._shadow_schemas.get(cache_key)
        if schema is None:
            schema = shadow_table_schema(
                table, codec.shadow_columns, self._shadow_table_prefix
            )
            self._shadow_schemas[cache_key] = schema
        return schema

    # ------------------------------------------------------------------
    def admit(
        self,
        scope: Any,
        event: Mapping[str, Any],
        table: TableSchema,
        primary_key: Sequence[Any],
    ) -> AdmissionResult:
        """Build the incoming sequence, read the stored one and compare them."""
        codec = codec_for_event(event, self._default_source_type)
        incoming = codec.from_event(event)
        shadow = self.shadow_schema(table, codec)
        stored = read_shadow_sequence(
            scope,
            codec,
            shadow.name,
            shadow,
            primary_key,
            reader=self._reader,
        )
        apply = should_apply(incoming, stored)
        logger.debug(
            "%s event for %s key %r: incoming=%s stored=%s",
            "applying" if apply else "discarding",
            table.name,
            list(primary_key),
            incoming,
            stored,
        )
        return AdmissionResult(
            apply=apply, incoming=incoming, stored=stored, shadow_table=shadow.name
        )

    def record(
        self,
        scope: Any,
        table: TableSchema,
        primary_key: Sequence[Any],
        sequence: ChangeEventSequence,
        previous: Optional[ChangeEventSequence] = None,
    ) -> None:
        """Replace the shadow row for ``primary_key`` with ``sequence``.

        ``previous`` is the sequence the admission read. ``None`` inserts the
        first row for the key; otherwise only a row still holding ``previous``
        is overwritten. When a concurrent writer changed the row first,
        :class:`ShadowTableConflictError` is raised so the transaction rolls
        back and the event can be admitted again.
        """
        codec = get_codec(sequence.source_type)
        shadow = self.shadow_schema(table, codec)
        values = list(codec.to_shadow_row(sequence).items())
        if previous is None:
            statement, params = build_shadow_insert_statement(
                shadow.name, shadow, primary_key, values
            )
        else:
            statement, params = build_shadow_update_statement(
                shadow.name,
                shadow,
                primary_key,
                values,
                list(codec.to_shadow_row(previous).items()),
            )
        try:
            rowcount = scope.execute(statement, params)
        except Error as exc:  # noqa: BLE001 - wrap driver errors
            raise ShadowTableWriteError(
                f"shadow table write failed for {shadow.name} "
                f"key {list(primary_key)!r}: {exc}"
            ) from exc
        if rowcount == 0:
            raise ShadowTableConflictError(
                f"shadow row in {shadow.name} for key {list(primary_key)!r} "
                f"changed since it was read as {previous}"
            )

    def process(
        self,
        conn: Any,
        event: Mapping[str, Any],
        table: TableSchema,
        primary_key: Sequence[Any],
        writer: Optional[EventWriter] = None,
    ) -> AdmissionResult:
        """Admit ``event`` and, when newer, write it and its shadow row atomically.

        ``writer`` receives the transaction scope and writes the event payload
        to the target table. On discard nothing is written and the transaction
        commits as a plain read. Outcomes are counted only once the
        transaction has committed.
        """
        with conn.transaction(self._isolation_level) as scope:
            result = self.admit(scope, event, table, primary_key)
            if result.apply:
                # Claim the shadow row before touching the target row.
                self.record(scope, table, primary_key, result.incoming, result.stored)
                if writer is not None:
                    writer(scope)
        if result.stored is None:
            self._metrics.inc("first_seen")
        self._metrics.inc("applied" if result.apply else "discarded")
        return result


__all__ = [
    "AdmissionMetrics",
    "AdmissionResult",
    "ChangeEventSequencer",
    "EventWriter",
    "ShadowTableConflictError",
    "ShadowTableWriteError",
]
