"""
Progress Service
================

Purpose
-------
Owns each participant's ProgressRecord: which units are completed and the
best score / best stars reached per unit. Answers unlock questions against
the ordered unit catalog.

Domain
------
- Completion facts feed the unlock chain (see `unlock_gate`)
- Best score and best stars only ever move up
- A unit appears in `best_scores` / `best_stars` only once it is completed
- Records are created empty on first login and never deleted

Error Policy
------------
- Reads degrade: a failed read is treated as "no progress", so every unit
  past the first reads as locked and best values read as None.
- Writes propagate `StoreUnavailableError` so the caller can retry or warn.
  Version conflicts that outlast the retry budget are reported the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from studytrack.core.constants import MAX_STARS, MIN_STARS
from studytrack.core.exceptions import StoreUnavailableError, VersionConflictError
from studytrack.core.store.base import ProgressStore, RecordKind
from studytrack.core.store.mutation import Compute, MutationResult, mutate_record
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.progress.unlock_gate import is_unlocked as gate_is_unlocked
from studytrack.modules.scoring.formulas import should_replace_best
from studytrack.modules.shared.base_service import BaseService, Clock
from studytrack.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager
    from studytrack.core.store.retry_policy import ConflictRetryPolicy


@dataclass(frozen=True)
class ProgressRecord:
    completed_units: List[str] = field(default_factory=list)
    best_scores: Dict[str, int] = field(default_factory=dict)
    best_stars: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_fields(cls, fields: Optional[Dict[str, Any]]) -> "ProgressRecord":
        if not fields:
            return cls()
        return cls(
            completed_units=list(fields.get("completed_units") or []),
            best_scores={str(k): int(v) for k, v in (fields.get("best_scores") or {}).items()},
            best_stars={str(k): int(v) for k, v in (fields.get("best_stars") or {}).items()},
        )

    def to_fields(self) -> Dict[str, Any]:
        return {
            "completed_units": list(self.completed_units),
            "best_scores": dict(self.best_scores),
            "best_stars": dict(self.best_stars),
        }

    def is_completed(self, unit_id: str) -> bool:
        return unit_id in self.completed_units


class ProgressService(BaseService):
    """
    Completion, best-score and unlock state per participant.

    All writes are versioned read-compute-write cycles retried on conflict,
    so two tabs completing units concurrently never drop each other's facts.
    """

    def __init__(
        self,
        store: ProgressStore,
        retry_policy: ConflictRetryPolicy,
        config_manager: ConfigManager,
        logger: Logger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(config_manager, logger, clock)
        self.store = store
        self.retry_policy = retry_policy

    @staticmethod
    def _key(participant_id: str) -> Dict[str, str]:
        return {"participant_id": participant_id}

    # ========================================================================
    # Reads
    # ========================================================================

    async def load_progress(self, participant_id: str) -> ProgressRecord:
        """Like `get_progress` but lets `StoreUnavailableError` through."""
        self.validate_identifier(participant_id, "participant_id")
        record = await self.store.get_record(RecordKind.PROGRESS, self._key(participant_id))
        return ProgressRecord.from_fields(record.fields if record else None)

    async def get_progress(self, participant_id: str) -> ProgressRecord:
        """Participant's progress; empty when absent or unreadable."""
        try:
            return await self.load_progress(participant_id)
        except StoreUnavailableError as exc:
            self.log.warning(
                "Progress read failed; assuming no progress",
                extra={"participant_id": participant_id, "error": str(exc)},
            )
            return ProgressRecord()

    async def is_unit_completed(self, participant_id: str, unit_id: str) -> bool:
        progress = await self.get_progress(participant_id)
        return progress.is_completed(unit_id)

    async def get_best_score(self, participant_id: str, unit_id: str) -> Optional[int]:
        progress = await self.get_progress(participant_id)
        return progress.best_scores.get(unit_id)

    async def get_best_stars(self, participant_id: str, unit_id: str) -> Optional[int]:
        progress = await self.get_progress(participant_id)
        return progress.best_stars.get(unit_id)

    async def is_unlocked(
        self, participant_id: str, all_unit_ids: Sequence[str], index: int
    ) -> bool:
        """
        Unlock check against stored progress.

        Index 0 never touches the store. A failed read means locked.

        Raises:
            InvalidIndexError: when `index` is outside `all_unit_ids`.
        """
        if gate_is_unlocked((), all_unit_ids, index):
            return True
        progress = await self.get_progress(participant_id)
        return gate_is_unlocked(progress.completed_units, all_unit_ids, index)

    async def require_unlocked(
        self, participant_id: str, all_unit_ids: Sequence[str], index: int
    ) -> None:
        """
        Guard for writes against a unit. Unlike `is_unlocked`, a failed read
        is not mistaken for "locked".

        Raises:
            InvalidIndexError: when `index` is outside `all_unit_ids`.
            ValidationError: when the unit is still locked.
            StoreUnavailableError: when progress cannot be read.
        """
        if gate_is_unlocked((), all_unit_ids, index):
            return
        progress = await self.load_progress(participant_id)
        if not gate_is_unlocked(progress.completed_units, all_unit_ids, index):
            raise ValidationError("unit_id", f"unit {all_unit_ids[index]!r} is locked")

    # ========================================================================
    # Writes
    # ========================================================================

    async def ensure_progress(self, participant_id: str) -> bool:
        """
        Create an empty ProgressRecord if none exists. Best-effort.

        Returns True when this call created the record.
        """
        self.validate_identifier(participant_id, "participant_id")
        try:
            await self.store.upsert_record(
                RecordKind.PROGRESS,
                self._key(participant_id),
                ProgressRecord().to_fields(),
                expected_version=0,
            )
        except VersionConflictError:
            return False
        except StoreUnavailableError as exc:
            self.log_error("ensure_progress", exc, participant_id=participant_id)
            return False

        self.log_operation("ensure_progress", participant_id=participant_id)
        return True

    async def record_completion(
        self,
        participant_id: str,
        unit_id: str,
        score: int,
        stars: Optional[int] = None,
    ) -> ProgressRecord:
        """
        Mark `unit_id` completed and raise its best score (and best stars,
        when given) if the new value is strictly higher.

        Raises:
            ValidationError: for bad ids, negative score or stars outside 0..3.
            StoreUnavailableError: when the store cannot be reached, or when
                concurrent writers keep winning past the retry budget.
        """
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(unit_id, "unit_id")
        self.validate_non_negative_int(score, "score")
        if stars is not None:
            self._validate_stars(stars)

        def compute(fields: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
            current = ProgressRecord.from_fields(fields)
            completed = list(current.completed_units)
            scores = dict(current.best_scores)
            best_stars = dict(current.best_stars)
            changed = fields is None

            if unit_id not in completed:
                completed.append(unit_id)
                changed = True
            if should_replace_best(score, scores.get(unit_id)):
                scores[unit_id] = score
                changed = True
            if stars is not None and should_replace_best(stars, best_stars.get(unit_id)):
                best_stars[unit_id] = stars
                changed = True

            if not changed:
                return None
            return ProgressRecord(completed, scores, best_stars).to_fields()

        result = await self._mutate_progress(participant_id, compute, "progress.record_completion")

        self.log_operation(
            "record_completion",
            participant_id=participant_id,
            unit_id=unit_id,
            score=score,
            stars=stars,
            written=result.written,
        )
        return ProgressRecord.from_fields(result.fields)

    async def save_stars(self, participant_id: str, unit_id: str, stars: int) -> bool:
        """
        Raise the best star count for a completed unit.

        Returns True when the stored value changed. Saving stars for a unit
        that is not completed is ignored (logged), keeping best-of maps a
        subset of the completed set.

        Raises:
            ValidationError: for stars outside 0..3.
            StoreUnavailableError: when the store cannot be reached, or when
                concurrent writers keep winning past the retry budget.
        """
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(unit_id, "unit_id")
        self._validate_stars(stars)

        skipped_incomplete = False

        def compute(fields: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
            nonlocal skipped_incomplete
            current = ProgressRecord.from_fields(fields)
            skipped_incomplete = not current.is_completed(unit_id)
            if skipped_incomplete or not should_replace_best(stars, current.best_stars.get(unit_id)):
                return None
            best_stars = {**current.best_stars, unit_id: stars}
            return ProgressRecord(current.completed_units, current.best_scores, best_stars).to_fields()

        result = await self._mutate_progress(participant_id, compute, "progress.save_stars")

        if skipped_incomplete:
            self.log.warning(
                "Stars not saved for a unit that is not completed",
                extra={"participant_id": participant_id, "unit_id": unit_id, "stars": stars},
            )
        return result.written

    async def _mutate_progress(
        self, participant_id: str, compute: Compute, operation_name: str
    ) -> MutationResult:
        """
        Versioned write; conflicts that outlast the retry budget surface as
        `StoreUnavailableError` so callers only handle one write failure.
        """
        try:
            return await mutate_record(
                self.store,
                self.retry_policy,
                RecordKind.PROGRESS,
                self._key(participant_id),
                compute,
                operation_name=operation_name,
            )
        except VersionConflictError as exc:
            self.log_error(operation_name, exc, participant_id=participant_id)
            raise StoreUnavailableError(operation_name, RecordKind.PROGRESS.value, exc) from exc

    @staticmethod
    def _validate_stars(stars: int) -> None:
        if isinstance(stars, bool) or not isinstance(stars, int) or not MIN_STARS <= stars <= MAX_STARS:
            raise ValidationError("stars", f"stars must be between {MIN_STARS} and {MAX_STARS}, got {stars!r}")
