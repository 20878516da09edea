"""
Video Run Service
=================

One VideoRun per attempt at watching a unit: created when the player page
opens, finalized once with the attempt's metrics when the participant
leaves it.

- The run is tagged with the session open when it was created.
- `update_video_run` stamps `ended_at` and lands at most once; later
  updates for the same run are ignored.
- Failures are logged and swallowed (telemetry).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Mapping, Optional

from studytrack.core.constants import DEFAULT_DAY_NUMBER
from studytrack.core.exceptions import StoreUnavailableError, VersionConflictError
from studytrack.core.store.base import ProgressStore, RecordKind
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.shared.base_service import BaseService, Clock
from studytrack.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager

VIDEO_RUN_METRICS: FrozenSet[str] = frozenset(
    {
        "time_on_page_ms",
        "time_to_click_play_ms",
        "time_to_click_start_quiz_ms",
        "time_to_click_generate_game_ms",
        "time_to_click_return_home_ms",
        "video_completion_pct",
        "num_video_pauses",
        "num_video_resumes",
        "num_popup_show",
        "num_popup_hide",
        "captions_on_count",
        "captions_off_count",
        "quiz_completed",
        "questions_answered",
        "questions_correct",
        "questions_incorrect",
        "avg_question_response_time_ms",
        "total_question_response_time_ms",
        "xp_gained",
        "video_stars",
        "hearts_remaining",
        "score_accuracy",
    }
)


def validate_metrics(metrics: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(metrics) - VIDEO_RUN_METRICS
    if unknown:
        raise ValidationError("metrics", f"Unknown video run metrics: {sorted(unknown)}")
    for name, value in metrics.items():
        if value is not None and not isinstance(value, (int, float, bool)):
            raise ValidationError(name, f"{name} must be numeric or boolean, got {value!r}")
    return dict(metrics)


class VideoRunService(BaseService):
    def __init__(
        self,
        store: ProgressStore,
        config_manager: ConfigManager,
        logger: Logger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(config_manager, logger, clock)
        self.store = store

    async def create_video_run(
        self,
        participant_id: str,
        condition: str,
        unit_id: str,
        day_number: int = DEFAULT_DAY_NUMBER,
        session_id: Optional[str] = None,
    ) -> Optional[str]:
        """Returns the run id, or None when the row could not be written."""
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(unit_id, "unit_id")

        try:
            run_id = await self.store.insert_record(
                RecordKind.VIDEO_RUN,
                {
                    "participant_id": participant_id,
                    "session_id": session_id,
                    "condition": condition,
                    "unit_id": unit_id,
                    "day_number": day_number,
                    "started_at": self.now(),
                    "metrics": {},
                },
            )
        except StoreUnavailableError as exc:
            self.log_error("create_video_run", exc, participant_id=participant_id, unit_id=unit_id)
            return None

        self.log_operation(
            "create_video_run",
            participant_id=participant_id,
            unit_id=unit_id,
            video_run_id=run_id,
            session_id=session_id,
        )
        return run_id

    async def update_video_run(self, video_run_id: str, metrics: Mapping[str, Any]) -> bool:
        """
        Attach final metrics and stamp `ended_at`.

        Returns True when this call finalized the run; False when the run is
        missing, already finalized, or the store failed.

        Raises:
            ValidationError: for unknown metric names or non-numeric values.
        """
        self.validate_identifier(video_run_id, "video_run_id")
        clean = validate_metrics(metrics)
        key = {"id": video_run_id}

        try:
            record = await self.store.get_record(RecordKind.VIDEO_RUN, key)
            if record is None:
                self.log.warning("Video run not found", extra={"video_run_id": video_run_id})
                return False
            if record.fields.get("ended_at") is not None:
                self.log.info(
                    "Video run already finalized; update ignored",
                    extra={"video_run_id": video_run_id},
                )
                return False

            await self.store.upsert_record(
                RecordKind.VIDEO_RUN,
                key,
                {
                    "ended_at": self.now(),
                    "metrics": {**(record.fields.get("metrics") or {}), **clean},
                },
                expected_version=record.version,
            )
        except VersionConflictError:
            self.log.info(
                "Video run finalized concurrently; update ignored",
                extra={"video_run_id": video_run_id},
            )
            return False
        except StoreUnavailableError as exc:
            self.log_error("update_video_run", exc, video_run_id=video_run_id)
            return False

        self.log_operation("update_video_run", video_run_id=video_run_id, metric_count=len(clean))
        return True

    async def get_video_run(self, video_run_id: str) -> Optional[Dict[str, Any]]:
        try:
            record = await self.store.get_record(RecordKind.VIDEO_RUN, {"id": video_run_id})
        except StoreUnavailableError as exc:
            self.log.warning("Video run read failed", extra={"video_run_id": video_run_id, "error": str(exc)})
            return None
        return dict(record.fields) if record else None
