"""Source-specific change event sequences and their total order.

A sequence tells *when* a change happened in its source engine's own terms.
Every variant carries an immutable ``source_type`` tag; two sequences are only
comparable when the tags match. Comparison is a single dispatch: the tags are
checked first, then the variant's sort key decides.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Tuple, Union

from ..constants import (
    MYSQL_DEFAULT_LOGFILE,
    MYSQL_DEFAULT_LOGPOSITION,
    MYSQL_SOURCE_TYPE,
    POSTGRES_DEFAULT_LSN,
    POSTGRES_SOURCE_TYPE,
)


class ChangeEventSequenceComparisonError(TypeError):
    """Raised when sequences from different source engines are compared."""


def lsn_to_int(lsn: str) -> int:
    """Decode a PostgreSQL ``X/Y`` LSN into its 64-bit integer position.

    The empty string is the dump/snapshot sentinel and decodes to ``-1``.
    """
    if lsn == POSTGRES_DEFAULT_LSN:
        return -1
    upper, sep, lower = lsn.partition("/")
    if not sep or not upper or not lower:
        raise ValueError(f"invalid LSN: {lsn!r}")
    try:
        high = int(upper, 16)
        low = int(lower, 16)
    except ValueError as exc:
        raise ValueError(f"invalid LSN: {lsn!r}") from exc
    if high < 0 or low < 0 or high > 0xFFFFFFFF or low > 0xFFFFFFFF:
        raise ValueError(f"invalid LSN: {lsn!r}")
    return (high << 32) | low


def int_to_lsn(value: int) -> str:
    upper = value >> 32
    lower = value & 0xFFFFFFFF
    return f"{upper:X}/{lower:X}"


class _OrderedBySequence:
    """Routes rich comparisons through :func:`compare_sequences`."""

    __slots__ = ()

    def __lt__(self, other: Any) -> bool:
        return compare_sequences(self, other) < 0  # type: ignore[arg-type]

    def __le__(self, other: Any) -> bool:
        return compare_sequences(self, other) <= 0  # type: ignore[arg-type]

    def __gt__(self, other: Any) -> bool:
        return compare_sequences(self, other) > 0  # type: ignore[arg-type]

    def __ge__(self, other: Any) -> bool:
        return compare_sequences(self, other) >= 0  # type: ignore[arg-type]


@dataclass(frozen=True, eq=True)
class MySqlChangeEventSequence(_OrderedBySequence):
    """Binlog coordinates of a MySQL change event.

    Dump events only carry a timestamp; the empty log file and ``-1`` position
    defaults make them strictly older than any streamed change sharing the
    same timestamp.
    """

    timestamp: int
    log_file: str = MYSQL_DEFAULT_LOGFILE
    log_position: int = MYSQL_DEFAULT_LOGPOSITION
    source_type: str = field(default=MYSQL_SOURCE_TYPE, init=False)

    def __str__(self) -> str:
        return (
            "MySqlChangeEventSequence{"
            f"timestamp={self.timestamp}, "
            f"logFile={self.log_file}, "
            f"logPosition={self.log_position}"
            "}"
        )


@dataclass(frozen=True, eq=True)
class PostgresChangeEventSequence(_OrderedBySequence):
    """Commit timestamp and WAL position of a PostgreSQL change event."""

    timestamp: int
    lsn: str = POSTGRES_DEFAULT_LSN
    source_type: str = field(default=POSTGRES_SOURCE_TYPE, init=False)

    def __post_init__(self) -> None:
        lsn_to_int(self.lsn)

    @property
    def lsn_position(self) -> int:
        return lsn_to_int(self.lsn)

    def __str__(self) -> str:
        return (
            "PostgresChangeEventSequence{"
            f"timestamp={self.timestamp}, "
            f"lsn={self.lsn}"
            "}"
        )


ChangeEventSequence = Union[MySqlChangeEventSequence, PostgresChangeEventSequence]


def _mysql_sort_key(sequence: MySqlChangeEventSequence) -> Tuple[int, str, int]:
    return (sequence.timestamp, sequence.log_file, sequence.log_position)


def _postgres_sort_key(sequence: PostgresChangeEventSequence) -> Tuple[int, int]:
    return (sequence.timestamp, sequence.lsn_position)


_SORT_KEYS: Dict[str, Callable[[Any], Tuple[Any, ...]]] = {
    MYSQL_SOURCE_TYPE: _mysql_sort_key,
    POSTGRES_SOURCE_TYPE: _postgres_sort_key,
}


def compare_sequences(a: ChangeEventSequence, b: ChangeEventSequence) -> int:
    """Return ``-1``, ``0`` or ``1`` as ``a`` sorts before, equal to or after ``b``.

    Raises :class:`ChangeEventSequenceComparisonError` when the two values do
    not share a source type; the pipeline never compares across engines.
    """
    left_type = getattr(a, "source_type", None)
    right_type = getattr(b, "source_type", None)
    if left_type is None or left_type != right_type:
        raise ChangeEventSequenceComparisonError(
            f"Expected: {left_type or type(a).__name__} sequence; "
            f"Received: {right_type or type(b).__name__}"
        )
    sort_key = _SORT_KEYS.get(left_type)
    if sort_key is None:
        raise ChangeEventSequenceComparisonError(
            f"no ordering registered for source type {left_type!r}"
        )
    left = sort_key(a)
    right = sort_key(b)
    return (left > right) - (left < right)


__all__ = [
    "ChangeEventSequence",
    "ChangeEventSequenceComparisonError",
    "MySqlChangeEventSequence",
    "PostgresChangeEventSequence",
    "compare_sequences",
    "int_to_lsn",
    "lsn_to_int",
]
