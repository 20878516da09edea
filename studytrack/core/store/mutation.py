"""
Versioned read-compute-write over a single record.

`mutate_record` reads the record, hands its fields to a pure `compute`
function, and writes the result conditioned on the version it read. A lost
race raises `VersionConflictError` inside the loop and the whole sequence is
re-run by the `ConflictRetryPolicy`, so `compute` always sees fresh state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from studytrack.core.store.base import ProgressStore, Record, RecordKind
from studytrack.core.store.retry_policy import ConflictRetryPolicy

Compute = Callable[[Optional[Dict[str, Any]]], Optional[Dict[str, Any]]]


@dataclass(frozen=True)
class MutationResult:
    """`fields` is the post-operation state (None when absent and untouched)."""

    fields: Optional[Dict[str, Any]]
    written: bool


async def mutate_record(
    store: ProgressStore,
    retry_policy: ConflictRetryPolicy,
    kind: RecordKind,
    key: Mapping[str, Any],
    compute: Compute,
    *,
    operation_name: str,
) -> MutationResult:
    """
    `compute(current_fields_or_None)` returns the fields to write, or None to
    leave the record as is. It must not have side effects: it may run
    several times.
    """

    async def attempt() -> MutationResult:
        current: Optional[Record] = await store.get_record(kind, key)
        current_fields = dict(current.fields) if current else None
        updated = compute(current_fields)
        if updated is None:
            return MutationResult(fields=current_fields, written=False)

        stored = await store.upsert_record(
            kind,
            key,
            updated,
            expected_version=current.version if current else 0,
        )
        return MutationResult(fields=dict(stored.fields), written=True)

    return await retry_policy.execute(
        attempt,
        operation_name=operation_name,
        context={"kind": kind.value, **{f"key_{k}": v for k, v in key.items()}},
    )
