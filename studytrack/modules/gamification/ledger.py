"""
Gamification Ledger
===================

Purpose
-------
Owns hearts, XP and the engagement streak for participants in a gamified
condition, including the daily heart reset at the study-day boundary.

Domain
------
- Hearts: per-day budget of MAX_HEARTS, one lost per incorrect answer at
  the moment it is judged, clamped at zero, refilled once per study day.
- XP: non-decreasing running total.
- Streak: consecutive study days with a login. Same day leaves it alone,
  the next day adds one, a longer gap (or a clock that went backwards)
  starts over at one.

State & Day Labels
------------------
- `last_activity_day` is advanced only by `update_streak`.
- `hearts_reset_day` is stamped by `check_and_reset_hearts`, so the refill
  happens at most once per study day even when the streak is never
  updated. Records written before the stamp existed fall back to
  `last_activity_day`.
- `login_sequence` runs the reset before the streak so both are attributed
  to the same day transition.

Error Policy
------------
Mutations log and swallow store failures (returning None); reads fall back
to defaults (a missing record means full hearts and may participate).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from studytrack.core.constants import INITIAL_STREAK_DAYS, INITIAL_XP, MAX_HEARTS
from studytrack.core.exceptions import StoreUnavailableError, VersionConflictError
from studytrack.core.store.base import ProgressStore, RecordKind
from studytrack.core.store.mutation import mutate_record
from studytrack.modules.clock.day_boundary import (
    day_identifier,
    days_between,
    should_advance_day,
    utc_now,
)
from studytrack.modules.shared.base_service import BaseService, Clock
from studytrack.modules.shared.validators import validate_non_negative_int

if TYPE_CHECKING:
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager
    from studytrack.core.store.retry_policy import ConflictRetryPolicy


@dataclass(frozen=True)
class GamificationSnapshot:
    xp: int = INITIAL_XP
    hearts: int = MAX_HEARTS
    streak_days: int = 0
    last_activity_day: Optional[str] = None
    hearts_reset_day: Optional[str] = None
    exists: bool = False

    @classmethod
    def from_fields(
        cls, fields: Optional[Dict[str, Any]], max_hearts: int = MAX_HEARTS
    ) -> "GamificationSnapshot":
        if not fields:
            return cls(hearts=max_hearts)
        hearts = fields.get("hearts")
        return cls(
            xp=int(fields.get("xp") or 0),
            hearts=max_hearts if hearts is None else int(hearts),
            streak_days=int(fields.get("streak_days") or 0),
            last_activity_day=fields.get("last_activity_day"),
            hearts_reset_day=fields.get("hearts_reset_day"),
            exists=True,
        )

    def to_fields(self) -> Dict[str, Any]:
        return {
            "xp": self.xp,
            "hearts": self.hearts,
            "streak_days": self.streak_days,
            "last_activity_day": self.last_activity_day,
            "hearts_reset_day": self.hearts_reset_day,
        }


class GamificationLedger(BaseService):
    """
    Hearts / XP / streak state machine per participant.

    States are Uninitialized (no record) and Active. Only
    `ensure_initialized` and `update_streak` leave Uninitialized; every
    other mutation on a missing record is a no-op.
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

    @property
    def max_hearts(self) -> int:
        return int(self.get_config("gamification.max_hearts", MAX_HEARTS))

    def today(self) -> str:
        return day_identifier(self.now())

    def _initial(self, today: str) -> GamificationSnapshot:
        return GamificationSnapshot(
            xp=INITIAL_XP,
            hearts=self.max_hearts,
            streak_days=INITIAL_STREAK_DAYS,
            last_activity_day=today,
            hearts_reset_day=today,
            exists=True,
        )

    async def _mutate(
        self,
        participant_id: str,
        operation: str,
        compute: Callable[[Optional[GamificationSnapshot]], Optional[GamificationSnapshot]],
    ) -> Optional[GamificationSnapshot]:
        """
        Versioned update of one participant's record.

        `compute` receives None for a missing record and returns the new
        state, or None to leave the record untouched. Returns the resulting
        snapshot (None when the record is still missing or the store failed).
        """
        self.validate_identifier(participant_id, "participant_id")
        max_hearts = self.max_hearts

        def to_fields(fields: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
            current = GamificationSnapshot.from_fields(fields, max_hearts) if fields else None
            updated = compute(current)
            return updated.to_fields() if updated is not None else None

        try:
            result = await mutate_record(
                self.store,
                self.retry_policy,
                RecordKind.GAMIFICATION,
                {"participant_id": participant_id},
                to_fields,
                operation_name=f"gamification.{operation}",
            )
        except (StoreUnavailableError, VersionConflictError) as exc:
            self.log_error(operation, exc, participant_id=participant_id)
            return None

        if result.written:
            self.log.debug(
                "Gamification record updated",
                extra={"participant_id": participant_id, "operation": operation, **(result.fields or {})},
            )
        if result.fields is None:
            return None
        return GamificationSnapshot.from_fields(result.fields, max_hearts)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def ensure_initialized(self, participant_id: str) -> Optional[GamificationSnapshot]:
        """Create the record (xp 0, full hearts, streak 1, today) if missing."""
        today = self.today()
        initial = self._initial(today)

        def compute(current: Optional[GamificationSnapshot]) -> Optional[GamificationSnapshot]:
            return initial if current is None else None

        return await self._mutate(participant_id, "ensure_initialized", compute)

    async def check_and_reset_hearts(self, participant_id: str) -> Optional[GamificationSnapshot]:
        """
        Refill hearts on the first call of a new study day.

        Returns the current snapshot, or None when there is no record (or
        the store failed).
        """
        now = self.now()
        today = day_identifier(now)
        max_hearts = self.max_hearts

        def compute(current: Optional[GamificationSnapshot]) -> Optional[GamificationSnapshot]:
            if current is None:
                return None
            marker = current.hearts_reset_day or current.last_activity_day
            if not should_advance_day(marker, now):
                return None
            return GamificationSnapshot(
                xp=current.xp,
                hearts=max_hearts,
                streak_days=current.streak_days,
                last_activity_day=current.last_activity_day,
                hearts_reset_day=today,
                exists=True,
            )

        return await self._mutate(participant_id, "check_and_reset_hearts", compute)

    async def update_streak(self, participant_id: str) -> Optional[GamificationSnapshot]:
        today = self.today()
        initial = self._initial(today)

        def compute(current: Optional[GamificationSnapshot]) -> Optional[GamificationSnapshot]:
            if current is None:
                return initial

            if current.streak_days == 0 or not current.last_activity_day:
                streak = INITIAL_STREAK_DAYS
            else:
                gap = days_between(current.last_activity_day, today)
                if gap == 0:
                    return None
                streak = current.streak_days + 1 if gap == 1 else INITIAL_STREAK_DAYS

            return GamificationSnapshot(
                xp=current.xp,
                hearts=current.hearts,
                streak_days=streak,
                last_activity_day=today,
                hearts_reset_day=current.hearts_reset_day,
                exists=True,
            )

        return await self._mutate(participant_id, "update_streak", compute)

    async def login_sequence(self, participant_id: str) -> Optional[GamificationSnapshot]:
        """Heart reset first, then streak, so one day transition drives both."""
        await self.check_and_reset_hearts(participant_id)
        return await self.update_streak(participant_id)

    # ========================================================================
    # Resources
    # ========================================================================

    async def award_xp(self, participant_id: str, amount: int) -> Optional[GamificationSnapshot]:
        """
        Add `amount` XP. No-op without a record.

        Raises:
            ValidationError: if amount is negative.
        """
        validate_non_negative_int(amount, "amount")

        def compute(current: Optional[GamificationSnapshot]) -> Optional[GamificationSnapshot]:
            if current is None or amount == 0:
                return None
            return GamificationSnapshot(
                xp=current.xp + amount,
                hearts=current.hearts,
                streak_days=current.streak_days,
                last_activity_day=current.last_activity_day,
                hearts_reset_day=current.hearts_reset_day,
                exists=True,
            )

        snapshot = await self._mutate(participant_id, "award_xp", compute)
        if snapshot is not None:
            self.log_operation("award_xp", participant_id=participant_id, amount=amount, xp=snapshot.xp)
        return snapshot

    async def deduct_heart(self, participant_id: str) -> Optional[GamificationSnapshot]:
        """Take one heart, never below zero. No-op without a record."""

        def compute(current: Optional[GamificationSnapshot]) -> Optional[GamificationSnapshot]:
            if current is None or current.hearts <= 0:
                return None
            return GamificationSnapshot(
                xp=current.xp,
                hearts=current.hearts - 1,
                streak_days=current.streak_days,
                last_activity_day=current.last_activity_day,
                hearts_reset_day=current.hearts_reset_day,
                exists=True,
            )

        return await self._mutate(participant_id, "deduct_heart", compute)

    # ========================================================================
    # Queries
    # ========================================================================

    async def can_participate(self, participant_id: str) -> bool:
        """Hearts left after today's reset. Missing record or store failure: allowed."""
        snapshot = await self.check_and_reset_hearts(participant_id)
        if snapshot is None:
            return True
        return snapshot.hearts > 0

    async def get_snapshot(self, participant_id: str) -> GamificationSnapshot:
        """Current state without side effects; defaults when absent or unreadable."""
        self.validate_identifier(participant_id, "participant_id")
        try:
            record = await self.store.get_record(
                RecordKind.GAMIFICATION, {"participant_id": participant_id}
            )
        except StoreUnavailableError as exc:
            self.log.warning(
                "Gamification read failed; returning defaults",
                extra={"participant_id": participant_id, "error": str(exc)},
            )
            record = None
        return GamificationSnapshot.from_fields(record.fields if record else None, self.max_hearts)
