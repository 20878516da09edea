"""
Engagement Engine
=================

Purpose
-------
Single entry point for the UI/runtime layer. Translates participant
actions (login, quiz completion, answer judgement, visibility and page
lifecycle) into calls on the progress, gamification, session and
telemetry services, and answers the UI's queries.

Flows
-----
- Login: ensure an empty progress record, run the daily heart reset and
  streak update (gamified arms only), open a session on the tab handle.
- Quiz completed: refuse locked units, record completion and best score
  (and stars on gamified arms), then append the quiz result; gamified arms
  also earn XP and update the streak.
  Hearts are not touched here: they were spent answer by answer.
- Answer judged incorrect: deduct one heart (gamified arms only).
- Tab hidden / visible, before unload, page hide, logout: session
  lifecycle on the tab handle.

Errors
------
Quiz-result and progress writes propagate `StoreUnavailableError`.
Progress is written before the quiz result, so a retry after a failed
progress write never leaves a duplicate quiz-result row. Everything else follows the owning service's swallow/degrade policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from studytrack.core.constants import DEFAULT_DAY_NUMBER
from studytrack.core.logging.logger import LogContext, get_logger
from studytrack.modules.gamification.ledger import GamificationSnapshot
from studytrack.modules.progress.unlock_gate import highest_unlocked_index
from studytrack.modules.quiz.result_service import QuizResult
from studytrack.modules.scoring.formulas import stars as compute_stars
from studytrack.modules.scoring.formulas import xp as compute_xp
from studytrack.modules.sessions.handle import SessionHandle
from studytrack.modules.shared.exceptions import ValidationError
from studytrack.modules.shared.validators import validate_identifier, validate_quiz_counts
from studytrack.modules.study.condition import (
    gamified_conditions_from,
    is_gamified_condition,
    parse_cohort,
    parse_condition,
)

if TYPE_CHECKING:
    import asyncio

    from studytrack.core.services.container import ServiceContainer

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    session_id: Optional[str]
    gamified: bool
    gamification: Optional[GamificationSnapshot] = None
    cohort: Optional[str] = None


@dataclass(frozen=True)
class QuizOutcome:
    unit_id: str
    correct: int
    total: int
    quiz_result_id: str
    best_score: Optional[int]
    gamified: bool
    stars: Optional[int] = None
    xp_awarded: int = 0
    gamification: Optional[GamificationSnapshot] = None


class EngagementEngine:
    """
    Facade over the StudyTrack services for one unit catalog.

    Args:
        services: Initialized ServiceContainer
        unit_ids: Ordered unit catalog; order defines the unlock chain
    """

    def __init__(self, services: ServiceContainer, unit_ids: Sequence[str]) -> None:
        for unit_id in unit_ids:
            validate_identifier(unit_id, "unit_id")
        if len(set(unit_ids)) != len(unit_ids):
            raise ValidationError("unit_ids", "unit catalog contains duplicate ids")

        self.services = services
        self._unit_ids: tuple[str, ...] = tuple(unit_ids)

    @property
    def unit_ids(self) -> tuple[str, ...]:
        return self._unit_ids

    def new_handle(self) -> SessionHandle:
        return self.services.sessions.new_handle()

    def is_gamified(self, condition: Optional[str]) -> bool:
        return is_gamified_condition(
            condition, gamified_conditions_from(self.services.config_manager)
        )

    @staticmethod
    def _require_participant(handle: SessionHandle) -> str:
        if handle.participant_id is None:
            raise ValidationError("participant_id", "no participant is logged in on this handle")
        return handle.participant_id

    # ========================================================================
    # Triggers
    # ========================================================================

    async def on_login(
        self,
        handle: SessionHandle,
        participant_id: str,
        condition: str,
        day_number: int = DEFAULT_DAY_NUMBER,
        cohort: Optional[str] = None,
    ) -> LoginResult:
        """
        Raises:
            ValueError: for an unknown condition or cohort tag.
        """
        condition_tag = parse_condition(condition).value
        cohort_tag = parse_cohort(cohort).value if cohort is not None else None
        gamified = self.is_gamified(condition_tag)

        async with LogContext(participant_id=participant_id, operation="on_login"):
            await self.services.progress.ensure_progress(participant_id)

            snapshot = None
            if gamified:
                snapshot = await self.services.gamification.login_sequence(participant_id)

            session_id = await self.services.sessions.start_session(
                handle, participant_id, condition_tag, day_number
            )
            self.services.events.record_for(
                handle, "login", {"gamified": gamified, "cohort": cohort_tag}
            )

            logger.info(
                "Participant logged in",
                extra={"gamified": gamified, "session_id": session_id, "day_number": day_number},
            )
            return LoginResult(
                session_id=session_id, gamified=gamified, gamification=snapshot, cohort=cohort_tag
            )

    async def on_quiz_completed(
        self,
        handle: SessionHandle,
        unit_id: str,
        correct: int,
        total: int,
        video_run_id: Optional[str] = None,
    ) -> QuizOutcome:
        """
        Raises:
            ValidationError: no participant on the handle, unknown or locked
                unit, bad counts.
            StoreUnavailableError: when the progress read or write, or the
                quiz-result write, fails.
        """
        participant_id = self._require_participant(handle)
        if unit_id not in self._unit_ids:
            raise ValidationError("unit_id", f"unknown unit {unit_id!r}")
        validate_quiz_counts(correct, total)
        gamified = self.is_gamified(handle.condition)
        index = self._unit_ids.index(unit_id)

        async with LogContext(
            participant_id=participant_id, session_id=handle.session_id, operation="on_quiz_completed"
        ):
            await self.services.progress.require_unlocked(participant_id, self._unit_ids, index)

            earned_stars = compute_stars(correct, total) if gamified else None
            progress = await self.services.progress.record_completion(
                participant_id, unit_id, correct, stars=earned_stars
            )
            result_id = await self.services.quiz_results.save_quiz_result(
                participant_id, QuizResult.from_counts(unit_id, correct, total)
            )

            xp_awarded = 0
            snapshot = None
            if gamified:
                xp_awarded = compute_xp(correct, total)
                await self.services.gamification.award_xp(participant_id, xp_awarded)
                snapshot = await self.services.gamification.update_streak(participant_id)

            self.services.events.record_for(
                handle,
                "quiz_completed",
                {"unit_id": unit_id, "correct": correct, "total": total, "stars": earned_stars, "xp": xp_awarded},
                video_run_id=video_run_id,
            )

            return QuizOutcome(
                unit_id=unit_id,
                correct=correct,
                total=total,
                quiz_result_id=result_id,
                best_score=progress.best_scores.get(unit_id),
                gamified=gamified,
                stars=earned_stars,
                xp_awarded=xp_awarded,
                gamification=snapshot,
            )

    async def on_answer_judged(
        self,
        handle: SessionHandle,
        correct: bool,
        video_run_id: Optional[str] = None,
    ) -> Optional[GamificationSnapshot]:
        """Spend a heart on a wrong answer (gamified arms). Returns the new state, if changed."""
        participant_id = self._require_participant(handle)
        snapshot = None
        if not correct and self.is_gamified(handle.condition):
            snapshot = await self.services.gamification.deduct_heart(participant_id)

        self.services.events.record_for(
            handle, "answer_judged", {"correct": bool(correct)}, video_run_id=video_run_id
        )
        return snapshot

    async def on_tab_hidden(self, handle: SessionHandle) -> bool:
        return await self.services.sessions.on_tab_hidden(handle)

    async def on_tab_visible(self, handle: SessionHandle) -> Optional[str]:
        return await self.services.sessions.on_tab_visible(handle)

    def on_before_unload(self, handle: SessionHandle) -> Optional[asyncio.Task[Any]]:
        return self.services.sessions.on_before_unload(handle)

    def on_page_hide(self, handle: SessionHandle) -> Optional[asyncio.Task[Any]]:
        return self.services.sessions.on_page_hide(handle)

    async def on_logout(self, handle: SessionHandle) -> bool:
        if handle.participant_id is not None:
            self.services.events.record_for(handle, "logout")
        return await self.services.sessions.logout(handle)

    # ========================================================================
    # Queries
    # ========================================================================

    async def is_unlocked(self, participant_id: str, index: int) -> bool:
        return await self.services.progress.is_unlocked(participant_id, self._unit_ids, index)

    async def unlocked_units(self, participant_id: str) -> List[str]:
        """Unit ids the participant can open, in catalog order."""
        progress = await self.services.progress.get_progress(participant_id)
        highest = highest_unlocked_index(progress.completed_units, self._unit_ids)
        return list(self._unit_ids[: highest + 1])

    async def get_best_score(self, participant_id: str, unit_id: str) -> Optional[int]:
        return await self.services.progress.get_best_score(participant_id, unit_id)

    async def get_gamification_snapshot(self, participant_id: str) -> GamificationSnapshot:
        return await self.services.gamification.get_snapshot(participant_id)

    async def can_participate(self, participant_id: str) -> bool:
        return await self.services.gamification.can_participate(participant_id)

    async def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        await self.services.shutdown(timeout=timeout)
