"""Per-engine codecs building sequences from change events and shadow rows."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from ..constants import (
    EVENT_SOURCE_TYPE_KEY,
    EVENT_TIMESTAMP_KEY,
    MYSQL_DEFAULT_LOGFILE,
    MYSQL_DEFAULT_LOGPOSITION,
    MYSQL_LOGFILE_KEY,
    MYSQL_LOGPOSITION_KEY,
    MYSQL_SORT_ORDER,
    MYSQL_SOURCE_TYPE,
    POSTGRES_DEFAULT_LSN,
    POSTGRES_LSN_KEY,
    POSTGRES_SORT_ORDER,
    POSTGRES_SOURCE_TYPE,
    SHADOW_LOGFILE_COLUMN,
    SHADOW_LOGPOSITION_COLUMN,
    SHADOW_LSN_COLUMN,
    SHADOW_TIMESTAMP_COLUMN,
)
from .payload import InvalidChangeEventError, as_payload
from .sequence import (
    ChangeEventSequence,
    MySqlChangeEventSequence,
    PostgresChangeEventSequence,
)

logger = logging.getLogger(__name__)


class UnsupportedSourceTypeError(ValueError):
    """Raised when no codec is registered for a source type."""


class InvalidShadowRowError(KeyError):
    """Raised when a persisted shadow row lacks a sequence column."""


class SequenceCodec(Protocol):
    """Builds sequences for one source engine."""

    source_type: str
    shadow_columns: Tuple[Tuple[str, str], ...]

    @property
    def column_names(self) -> List[str]: ...

    def from_event(self, event: Mapping[str, Any]) -> ChangeEventSequence: ...

    def to_shadow_row(self, sequence: ChangeEventSequence) -> Dict[str, Any]: ...

    def from_shadow_row(
        self, row: Optional[Mapping[str, Any]]
    ) -> Optional[ChangeEventSequence]: ...


def _check_source_type(sequence: ChangeEventSequence, source_type: str) -> None:
    if getattr(sequence, "source_type", None) != source_type:
        raise TypeError(
            f"{source_type} codec cannot encode {type(sequence).__name__}"
        )


def _shadow_values(
    row: Mapping[str, Any], columns: List[str], source_type: str
) -> List[Any]:
    values = []
    for column in columns:
        if column not in row or row[column] is None:
            raise InvalidShadowRowError(
                f"{source_type} shadow row is missing column {column!r}"
            )
        values.append(row[column])
    return values


class MySqlSequenceCodec:
    """Codec for MySQL binlog-positioned change events."""

    source_type = MYSQL_SOURCE_TYPE
    shadow_columns: Tuple[Tuple[str, str], ...] = tuple(MYSQL_SORT_ORDER.values())

    @property
    def column_names(self) -> List[str]:
        return [name for name, _ in self.shadow_columns]

    def from_event(self, event: Mapping[str, Any]) -> MySqlChangeEventSequence:
        payload = as_payload(event)
        # Dump events carry only the timestamp.
        log_file = payload.get_string(
            MYSQL_LOGFILE_KEY, required=False, source_type=self.source_type
        )
        if log_file is None:
            log_file = MYSQL_DEFAULT_LOGFILE
        log_position = payload.get_long(
            MYSQL_LOGPOSITION_KEY, required=False, source_type=self.source_type
        )
        if log_position is None:
            log_position = MYSQL_DEFAULT_LOGPOSITION
        timestamp = payload.get_long(
            EVENT_TIMESTAMP_KEY, required=True, source_type=self.source_type
        )
        return MySqlChangeEventSequence(
            timestamp=timestamp,  # type: ignore[arg-type]
            log_file=log_file,
            log_position=log_position,
        )

    def to_shadow_row(self, sequence: ChangeEventSequence) -> Dict[str, Any]:
        _check_source_type(sequence, self.source_type)
        return {
            SHADOW_TIMESTAMP_COLUMN: sequence.timestamp,
            SHADOW_LOGFILE_COLUMN: sequence.log_file,  # type: ignore[union-attr]
            SHADOW_LOGPOSITION_COLUMN: sequence.log_position,  # type: ignore[union-attr]
        }

    def from_shadow_row(
        self, row: Optional[Mapping[str, Any]]
    ) -> Optional[MySqlChangeEventSequence]:
        if row is None:
            return None
        timestamp, log_file, log_position = _shadow_values(
            row, self.column_names, self.source_type
        )
        return MySqlChangeEventSequence(
            timestamp=int(timestamp),
            log_file=str(log_file),
            log_position=int(log_position),
        )


class PostgresSequenceCodec:
    """Codec for PostgreSQL WAL-positioned change events."""

    source_type = POSTGRES_SOURCE_TYPE
    shadow_columns: Tuple[Tuple[str, str], ...] = tuple(POSTGRES_SORT_ORDER.values())

    @property
    def column_names(self) -> List[str]:
        return [name for name, _ in self.shadow_columns]

    def from_event(self, event: Mapping[str, Any]) -> PostgresChangeEventSequence:
        payload = as_payload(event)
        lsn = payload.get_string(
            POSTGRES_LSN_KEY, required=False, source_type=self.source_type
        )
        if lsn is None:
            lsn = POSTGRES_DEFAULT_LSN
        timestamp = payload.get_long(
            EVENT_TIMESTAMP_KEY, required=True, source_type=self.source_type
        )
        try:
            return PostgresChangeEventSequence(
                timestamp=timestamp,  # type: ignore[arg-type]
                lsn=lsn.strip(),
            )
        except ValueError as exc:
            raise InvalidChangeEventError(
                f"Malformed {POSTGRES_LSN_KEY!r} ({self.source_type} change event): {exc}",
                field=POSTGRES_LSN_KEY,
                source_type=self.source_type,
            ) from exc

    def to_shadow_row(self, sequence: ChangeEventSequence) -> Dict[str, Any]:
        _check_source_type(sequence, self.source_type)
        return {
            SHADOW_TIMESTAMP_COLUMN: sequence.timestamp,
            SHADOW_LSN_COLUMN: sequence.lsn,  # type: ignore[union-attr]
        }

    def from_shadow_row(
        self, row: Optional[Mapping[str, Any]]
    ) -> Optional[PostgresChangeEventSequence]:
        if row is None:
            return None
        timestamp, lsn = _shadow_values(row, self.column_names, self.source_type)
        return PostgresChangeEventSequence(timestamp=int(timestamp), lsn=str(lsn))


_CODECS: Dict[str, SequenceCodec] = {
    codec.source_type: codec
    for codec in (MySqlSequenceCodec(), PostgresSequenceCodec())
}


def get_codec(source_type: str) -> SequenceCodec:
    codec = _CODECS.get(source_type.strip().lower())
    if codec is None:
        raise UnsupportedSourceTypeError(
            f"unsupported source type {source_type!r}; "
            f"expected one of {sorted(_CODECS)}"
        )
    return codec


def codec_for_event(
    event: Mapping[str, Any], default_source_type: str = MYSQL_SOURCE_TYPE
) -> SequenceCodec:
    """Pick the codec named by the event's source type, else the default."""
    declared = as_payload(event).source_type
    if declared is None:
        logger.debug(
            "change event has no source type; using default %s", default_source_type
        )
        return get_codec(default_source_type)
    try:
        return get_codec(declared)
    except UnsupportedSourceTypeError as exc:
        raise InvalidChangeEventError(
            str(exc), field=EVENT_SOURCE_TYPE_KEY, source_type=declared
        ) from exc


__all__ = [
    "InvalidShadowRowError",
    "MySqlSequenceCodec",
    "PostgresSequenceCodec",
    "SequenceCodec",
    "UnsupportedSourceTypeError",
    "codec_for_event",
    "get_codec",
]
