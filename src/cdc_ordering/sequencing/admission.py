"""Admission decision for incoming change events."""

from __future__ import annotations

from typing import Optional

from .sequence import ChangeEventSequence, compare_sequences


def should_apply(
    incoming: ChangeEventSequence, stored: Optional[ChangeEventSequence]
) -> bool:
    """Return True when ``incoming`` is strictly newer than ``stored``.

    A missing stored sequence means nothing was applied to the key yet. Equal
    sequences are duplicates and lower ones are stale replays; both are
    discarded. The caller must act on the answer in the same transaction as
    the shadow read that produced ``stored``.
    """
    if stored is None:
        return True
    return compare_sequences(incoming, stored) > 0


__all__ = ["should_apply"]
