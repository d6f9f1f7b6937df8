"""Ordering core for replaying CDC change events into PostgreSQL."""

from .sequencing import (
    ChangeEventSequencer,
    MySqlChangeEventSequence,
    PostgresChangeEventSequence,
    compare_sequences,
    get_codec,
    should_apply,
)


def main() -> None:
    """Entrypoint proxy that defers importing the CLI until needed."""

    from .shadow.__main__ import main as _shadow_main

    raise SystemExit(_shadow_main())


__all__ = [
    "ChangeEventSequencer",
    "MySqlChangeEventSequence",
    "PostgresChangeEventSequence",
    "compare_sequences",
    "get_codec",
    "main",
    "should_apply",
]
