"""
Video State Service
===================

Resume point and caption preference per participant and unit, so the
player reopens where the participant left off. One record per
participant+unit; saves overwrite.

Reads degrade to None; saves propagate `StoreUnavailableError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from studytrack.core.exceptions import StoreUnavailableError
from studytrack.core.store.base import ProgressStore, RecordKind
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.shared.base_service import BaseService, Clock
from studytrack.modules.shared.exceptions import ValidationError
from studytrack.modules.shared.validators import validate_percentage

if TYPE_CHECKING:
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager


@dataclass(frozen=True)
class VideoState:
    completion_percent: float = 0.0
    last_position_sec: float = 0.0
    last_caption_state: Optional[bool] = None

    def to_fields(self) -> Dict[str, Any]:
        return {
            "completion_percent": self.completion_percent,
            "last_position_sec": self.last_position_sec,
            "last_caption_state": self.last_caption_state,
        }


class VideoStateService(BaseService):
    def __init__(
        self,
        store: ProgressStore,
        config_manager: ConfigManager,
        logger: Logger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(config_manager, logger, clock)
        self.store = store

    @staticmethod
    def _key(participant_id: str, unit_id: str) -> Dict[str, str]:
        return {"participant_id": participant_id, "unit_id": unit_id}

    async def get_video_state(self, participant_id: str, unit_id: str) -> Optional[VideoState]:
        try:
            record = await self.store.get_record(
                RecordKind.VIDEO_STATE, self._key(participant_id, unit_id)
            )
        except StoreUnavailableError as exc:
            self.log.warning(
                "Video state read failed",
                extra={"participant_id": participant_id, "unit_id": unit_id, "error": str(exc)},
            )
            return None
        if record is None:
            return None
        return VideoState(
            completion_percent=float(record.get("completion_percent", 0.0)),
            last_position_sec=float(record.get("last_position_sec", 0.0)),
            last_caption_state=record.fields.get("last_caption_state"),
        )

    async def save_video_state(self, participant_id: str, unit_id: str, state: VideoState) -> None:
        """
        Raises:
            ValidationError: for out-of-range percent or negative position.
            StoreUnavailableError: when the store cannot be reached.
        """
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(unit_id, "unit_id")
        validate_percentage(state.completion_percent, "completion_percent")
        if state.last_position_sec < 0:
            raise ValidationError(
                "last_position_sec", f"last_position_sec must be >= 0, got {state.last_position_sec}"
            )

        try:
            await self.store.upsert_record(
                RecordKind.VIDEO_STATE, self._key(participant_id, unit_id), state.to_fields()
            )
        except StoreUnavailableError as exc:
            self.log_error("save_video_state", exc, participant_id=participant_id, unit_id=unit_id)
            raise
