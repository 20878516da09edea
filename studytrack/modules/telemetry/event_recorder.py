"""
Event Recorder
==============

Append-only log of discrete interaction events (button clicks, quiz
answers, caption toggles, ...), tagged with the session and video run
they happened in.

Delivery is best-effort: `record` never blocks or raises because of the
store, and a failed write is logged and dropped. Event order per
participant follows `occurred_at`, captured when `record` is called.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from studytrack.core.background import BackgroundDispatcher
from studytrack.core.exceptions import StoreUnavailableError
from studytrack.core.store.base import ProgressStore, RecordKind
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.shared.base_service import BaseService, Clock

if TYPE_CHECKING:
    import asyncio
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager
    from studytrack.modules.sessions.handle import SessionHandle


class EventRecorder(BaseService):
    def __init__(
        self,
        store: ProgressStore,
        dispatcher: BackgroundDispatcher,
        config_manager: ConfigManager,
        logger: Logger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(config_manager, logger, clock)
        self.store = store
        self.dispatcher = dispatcher

    @property
    def enabled(self) -> bool:
        return bool(self.get_config("telemetry.enabled", True))

    def _build(
        self,
        participant_id: str,
        event_type: str,
        metadata: Optional[Mapping[str, Any]],
        session_id: Optional[str],
        video_run_id: Optional[str],
        condition: Optional[str],
        day_number: Optional[int],
    ) -> Dict[str, Any]:
        return {
            "participant_id": participant_id,
            "session_id": session_id,
            "video_run_id": video_run_id,
            "condition": condition,
            "day_number": day_number,
            "event_type": event_type,
            "occurred_at": self.now(),
            "meta": dict(metadata or {}),
        }

    async def _write(self, fields: Dict[str, Any]) -> Optional[str]:
        try:
            return await self.store.insert_record(RecordKind.EVENT, fields)
        except StoreUnavailableError as exc:
            self.log.warning(
                "Event dropped",
                extra={
                    "participant_id": fields["participant_id"],
                    "event_type": fields["event_type"],
                    "error": str(exc),
                },
            )
            return None

    def record(
        self,
        participant_id: str,
        event_type: str,
        metadata: Optional[Mapping[str, Any]] = None,
        session_id: Optional[str] = None,
        video_run_id: Optional[str] = None,
        condition: Optional[str] = None,
        day_number: Optional[int] = None,
    ) -> Optional[asyncio.Task[Any]]:
        """Fire-and-forget append. Returns the background task, if one was started."""
        if not self.enabled:
            return None
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(event_type, "event_type")

        fields = self._build(
            participant_id, event_type, metadata, session_id, video_run_id, condition, day_number
        )
        return self.dispatcher.dispatch(self._write(fields), name=f"event-{event_type}")

    async def record_now(
        self,
        participant_id: str,
        event_type: str,
        metadata: Optional[Mapping[str, Any]] = None,
        session_id: Optional[str] = None,
        video_run_id: Optional[str] = None,
        condition: Optional[str] = None,
        day_number: Optional[int] = None,
    ) -> Optional[str]:
        """Awaited append with the same swallow-on-failure policy. Returns the event id."""
        if not self.enabled:
            return None
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(event_type, "event_type")

        fields = self._build(
            participant_id, event_type, metadata, session_id, video_run_id, condition, day_number
        )
        return await self._write(fields)

    def record_for(
        self,
        handle: SessionHandle,
        event_type: str,
        metadata: Optional[Mapping[str, Any]] = None,
        video_run_id: Optional[str] = None,
    ) -> Optional[asyncio.Task[Any]]:
        """Record against the identity and open session of a tab handle."""
        if handle.participant_id is None:
            self.log.debug("Event skipped; no participant on handle", extra={"event_type": event_type})
            return None
        return self.record(
            handle.participant_id,
            event_type,
            metadata,
            session_id=handle.session_id,
            video_run_id=video_run_id,
            condition=handle.condition,
            day_number=handle.day_number,
        )
