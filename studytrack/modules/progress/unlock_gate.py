"""
Unlock gate over the ordered unit catalog.

Strict linear chain: unit 0 is always open, unit k > 0 opens only once
unit k-1 is in the participant's completed set. No skipping, and an empty
completed set never falls back to "everything unlocked".
"""

from __future__ import annotations

from typing import Collection, Sequence

from studytrack.modules.shared.exceptions import InvalidIndexError


def is_unlocked(
    completed_units: Collection[str],
    all_unit_ids: Sequence[str],
    index: int,
) -> bool:
    """
    Raises:
        InvalidIndexError: when `index` is outside `all_unit_ids`.
    """
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(all_unit_ids):
        raise InvalidIndexError(index, len(all_unit_ids))
    if index == 0:
        return True
    return all_unit_ids[index - 1] in completed_units


def highest_unlocked_index(completed_units: Collection[str], all_unit_ids: Sequence[str]) -> int:
    """Index of the furthest unit the participant can open (-1 for an empty catalog)."""
    highest = -1
    for index in range(len(all_unit_ids)):
        if not is_unlocked(completed_units, all_unit_ids, index):
            break
        highest = index
    return highest
