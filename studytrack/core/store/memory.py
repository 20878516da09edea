"""
In-process ProgressStore used by tests, demos and single-process runs.

Supports failure injection (`fail_next`, `set_unavailable`) so callers'
degrade/propagate policies can be exercised, and `yield_between_steps`
so concurrent read-modify-write sequences interleave like they would
against a remote store.
"""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from studytrack.core.database.base import new_record_id
from studytrack.core.exceptions import StoreUnavailableError, VersionConflictError
from studytrack.core.store.base import ProgressStore, Record, RecordKind, validate_key


class InMemoryProgressStore(ProgressStore):
    def __init__(self, yield_between_steps: bool = False) -> None:
        self._rows: Dict[RecordKind, Dict[str, Record]] = defaultdict(dict)
        self._lock = asyncio.Lock()
        self._yield = yield_between_steps
        self._unavailable = False
        self._pending_failures: List[Optional[str]] = []
        self.calls: List[str] = []

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def set_unavailable(self, unavailable: bool = True) -> None:
        """Fail every call with StoreUnavailableError until reset."""
        self._unavailable = unavailable

    def fail_next(self, operation: Optional[str] = None, count: int = 1) -> None:
        """Fail the next `count` calls (optionally only calls to `operation`)."""
        self._pending_failures.extend([operation] * count)

    async def _enter(self, operation: str, kind: RecordKind) -> None:
        self.calls.append(f"{operation}:{kind.value}")
        if self._yield:
            await asyncio.sleep(0)
        if self._unavailable:
            raise StoreUnavailableError(operation, kind.value)
        for index, target in enumerate(self._pending_failures):
            if target is None or target == operation:
                del self._pending_failures[index]
                raise StoreUnavailableError(
                    operation, kind.value, ConnectionError("injected failure")
                )

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _matches(record: Record, criteria: Mapping[str, Any]) -> bool:
        return all(record.fields.get(name) == value for name, value in criteria.items())

    def _find(self, kind: RecordKind, key: Mapping[str, Any]) -> Optional[Record]:
        if "id" in key and len(key) == 1:
            return self._rows[kind].get(key["id"])
        for record in self._rows[kind].values():
            if self._matches(record, key):
                return record
        return None

    @staticmethod
    def _snapshot(record: Record) -> Record:
        return Record(fields=copy.deepcopy(record.fields), version=record.version)

    # ------------------------------------------------------------------
    # ProgressStore
    # ------------------------------------------------------------------

    async def get_record(
        self, kind: RecordKind, key: Mapping[str, Any]
    ) -> Optional[Record]:
        await self._enter("get_record", kind)
        async with self._lock:
            record = self._find(kind, key)
            return self._snapshot(record) if record else None

    async def upsert_record(
        self,
        kind: RecordKind,
        key: Mapping[str, Any],
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Record:
        validate_key(kind, key)
        await self._enter("upsert_record", kind)
        async with self._lock:
            existing = self._find(kind, key)
            actual_version = existing.version if existing else 0
            if expected_version is not None and expected_version != actual_version:
                raise VersionConflictError(kind.value, dict(key), expected_version, actual_version)

            if existing:
                merged = {**existing.fields, **copy.deepcopy(dict(fields)), **key}
                record = Record(fields=merged, version=existing.version + 1)
            else:
                merged = {"id": new_record_id(), **copy.deepcopy(dict(fields)), **key}
                record = Record(fields=merged, version=1)

            self._rows[kind][record.fields["id"]] = record
            return self._snapshot(record)

    async def insert_record(self, kind: RecordKind, fields: Mapping[str, Any]) -> str:
        await self._enter("insert_record", kind)
        async with self._lock:
            record_id = fields.get("id") or new_record_id()
            self._rows[kind][record_id] = Record(
                fields={**copy.deepcopy(dict(fields)), "id": record_id}, version=1
            )
            return record_id

    async def query_records(
        self, kind: RecordKind, filter: Optional[Mapping[str, Any]] = None
    ) -> List[Record]:
        await self._enter("query_records", kind)
        async with self._lock:
            return [
                self._snapshot(record)
                for record in self._rows[kind].values()
                if self._matches(record, filter or {})
            ]

    async def update_record(
        self, kind: RecordKind, key: Mapping[str, Any], fields: Mapping[str, Any]
    ) -> bool:
        await self._enter("update_record", kind)
        async with self._lock:
            existing = self._find(kind, key)
            if existing is None:
                return False
            self._rows[kind][existing.fields["id"]] = Record(
                fields={**existing.fields, **copy.deepcopy(dict(fields))},
                version=existing.version + 1,
            )
            return True

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def count(self, kind: RecordKind) -> int:
        return len(self._rows[kind])

    def all_records(self, kind: RecordKind) -> List[Record]:
        return [self._snapshot(record) for record in self._rows[kind].values()]
