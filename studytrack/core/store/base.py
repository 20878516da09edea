"""
ProgressStore boundary.

Purpose
-------
Abstract record store reached over a network boundary. Services talk to it
through five coroutines and never see tables, sessions or connections.

Design Notes
------------
- A record is a flat field mapping plus an integer `version`.
- Every successful write bumps the version. Passing `expected_version` to
  `upsert_record` makes the write conditional; `0` means "must not exist".
  A mismatch raises `VersionConflictError`.
- Absence is not an error: `get_record` returns None.
- Backend failures surface as `StoreUnavailableError`.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


class RecordKind(str, enum.Enum):
    PROGRESS = "progress"
    GAMIFICATION = "gamification"
    SESSION = "session"
    VIDEO_RUN = "video_run"
    EVENT = "event"
    QUIZ_RESULT = "quiz_result"
    VIDEO_STATE = "video_state"

    @property
    def conflict_key(self) -> Tuple[str, ...]:
        """Fields that identify one record of this kind for upserts."""
        return CONFLICT_KEYS[self]


CONFLICT_KEYS: Dict[RecordKind, Tuple[str, ...]] = {
    RecordKind.PROGRESS: ("participant_id",),
    RecordKind.GAMIFICATION: ("participant_id",),
    RecordKind.SESSION: ("id",),
    RecordKind.VIDEO_RUN: ("id",),
    RecordKind.EVENT: ("id",),
    RecordKind.QUIZ_RESULT: ("id",),
    RecordKind.VIDEO_STATE: ("participant_id", "unit_id"),
}


@dataclass(frozen=True)
class Record:
    """Snapshot of a stored record. `fields` always includes `id`."""

    fields: Dict[str, Any] = field(default_factory=dict)
    version: int = 1

    @property
    def id(self) -> Optional[str]:
        return self.fields.get("id")

    def get(self, name: str, default: Any = None) -> Any:
        value = self.fields.get(name)
        return default if value is None else value


def validate_key(kind: RecordKind, key: Mapping[str, Any]) -> None:
    missing = [name for name in kind.conflict_key if key.get(name) is None]
    if missing:
        raise ValueError(f"{kind.value} key is missing {missing}")


class ProgressStore(ABC):
    """Async record store used by every StudyTrack service."""

    @abstractmethod
    async def get_record(
        self, kind: RecordKind, key: Mapping[str, Any]
    ) -> Optional[Record]:
        """Return the record matching `key`, or None."""

    @abstractmethod
    async def upsert_record(
        self,
        kind: RecordKind,
        key: Mapping[str, Any],
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Record:
        """
        Create or overwrite the record identified by `key`.

        Last write wins on the supplied fields unless `expected_version` is
        given, in which case the write only lands if the stored version
        still matches.
        """

    @abstractmethod
    async def insert_record(self, kind: RecordKind, fields: Mapping[str, Any]) -> str:
        """Append a new record and return its generated id."""

    @abstractmethod
    async def query_records(
        self, kind: RecordKind, filter: Optional[Mapping[str, Any]] = None
    ) -> List[Record]:
        """Return records whose fields equal every value in `filter`."""

    @abstractmethod
    async def update_record(
        self, kind: RecordKind, key: Mapping[str, Any], fields: Mapping[str, Any]
    ) -> bool:
        """Patch an existing record. Returns False when nothing matched."""

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
