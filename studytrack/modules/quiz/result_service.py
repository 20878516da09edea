"""
Quiz Result Service
===================

Appends one row per completed quiz attempt. Unlike telemetry, a failed
save propagates so the UI can retry or warn: quiz results are study data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from studytrack.core.exceptions import StoreUnavailableError
from studytrack.core.store.base import ProgressStore, RecordKind
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.scoring.formulas import score_accuracy
from studytrack.modules.shared.base_service import BaseService, Clock
from studytrack.modules.shared.validators import validate_quiz_counts

if TYPE_CHECKING:
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager


@dataclass(frozen=True)
class QuizResult:
    unit_id: str
    correct_count: int
    incorrect_count: int
    total_questions: int
    score_accuracy: float
    completed_at: Optional[datetime] = None

    @classmethod
    def from_counts(
        cls, unit_id: str, correct: int, total: int, completed_at: Optional[datetime] = None
    ) -> "QuizResult":
        validate_quiz_counts(correct, total)
        return cls(
            unit_id=unit_id,
            correct_count=correct,
            incorrect_count=total - correct,
            total_questions=total,
            score_accuracy=score_accuracy(correct, total),
            completed_at=completed_at,
        )

    @classmethod
    def from_fields(cls, fields: Dict[str, Any]) -> "QuizResult":
        return cls(
            unit_id=fields["unit_id"],
            correct_count=int(fields["correct_count"]),
            incorrect_count=int(fields["incorrect_count"]),
            total_questions=int(fields["total_questions"]),
            score_accuracy=float(fields["score_accuracy"]),
            completed_at=fields.get("completed_at"),
        )


class QuizResultService(BaseService):
    def __init__(
        self,
        store: ProgressStore,
        config_manager: ConfigManager,
        logger: Logger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(config_manager, logger, clock)
        self.store = store

    async def save_quiz_result(self, participant_id: str, result: QuizResult) -> str:
        """
        Persist one attempt and return its id.

        Raises:
            ValidationError: for inconsistent counts.
            StoreUnavailableError: when the store cannot be reached.
        """
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(result.unit_id, "unit_id")
        validate_quiz_counts(result.correct_count, result.total_questions)

        try:
            result_id = await self.store.insert_record(
                RecordKind.QUIZ_RESULT,
                {
                    "participant_id": participant_id,
                    "unit_id": result.unit_id,
                    "correct_count": result.correct_count,
                    "incorrect_count": result.incorrect_count,
                    "total_questions": result.total_questions,
                    "score_accuracy": result.score_accuracy,
                    "completed_at": result.completed_at or self.now(),
                },
            )
        except StoreUnavailableError as exc:
            self.log_error("save_quiz_result", exc, participant_id=participant_id, unit_id=result.unit_id)
            raise

        self.log_operation(
            "save_quiz_result",
            participant_id=participant_id,
            unit_id=result.unit_id,
            correct_count=result.correct_count,
            total_questions=result.total_questions,
        )
        return result_id

    async def list_quiz_results(
        self, participant_id: str, unit_id: Optional[str] = None
    ) -> List[QuizResult]:
        """Attempts ordered by completion time; empty when unreadable."""
        criteria: Dict[str, Any] = {"participant_id": participant_id}
        if unit_id is not None:
            criteria["unit_id"] = unit_id
        try:
            records = await self.store.query_records(RecordKind.QUIZ_RESULT, criteria)
        except StoreUnavailableError as exc:
            self.log.warning(
                "Quiz result query failed",
                extra={"participant_id": participant_id, "error": str(exc)},
            )
            return []
        results = [QuizResult.from_fields(record.fields) for record in records]
        return sorted(results, key=lambda r: r.completed_at.timestamp() if r.completed_at else 0.0)
