"""
Session Tracker
===============

Purpose
-------
Opens and closes session rows that bound a participant's active use of a
tab, driven by login, visibility and page-lifecycle signals.

State Machine (per SessionHandle)
---------------------------------
    Closed --start_session--> Open
    Open   --end_session(reason)--> Closed

- tab hidden        -> end_session(tab_hidden)
- tab visible       -> start_session with the cached identity, if any
- before unload     -> end_session_nowait(page_unload)
- page hide         -> end_session_nowait(page_hide)
- logout            -> end_session(logout), then forget the identity

Design Notes
------------
- Starting a session on a handle that is still open closes the old one
  first (reason "normal"), so within one tab a close always precedes the
  next open.
- The handle is cleared before the close is written; a failed close write
  leaves a dangling open row, never a handle stuck open.
- Unload/page-hide closes go through the BackgroundDispatcher and are
  at-most-once: the page may die before the write lands.
- Store failures are logged and swallowed; session rows are telemetry.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from studytrack.core.background import BackgroundDispatcher
from studytrack.core.constants import DEFAULT_DAY_NUMBER
from studytrack.core.exceptions import StoreUnavailableError
from studytrack.core.logging.logger import LogContext
from studytrack.core.store.base import ProgressStore, Record, RecordKind
from studytrack.database.models.enums import SessionEndReason
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.sessions.handle import SessionHandle
from studytrack.modules.shared.base_service import BaseService, Clock

if TYPE_CHECKING:
    import asyncio
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager

ReasonLike = Union[SessionEndReason, str]


def duration_ms(started_at: datetime, ended_at: datetime) -> int:
    """Whole milliseconds between two instants, never negative."""
    return max(0, int((ended_at - started_at).total_seconds() * 1000))


class SessionTracker(BaseService):
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

    def new_handle(self) -> SessionHandle:
        return SessionHandle()

    # ========================================================================
    # Open / close
    # ========================================================================

    async def start_session(
        self,
        handle: SessionHandle,
        participant_id: str,
        condition: str,
        day_number: int = DEFAULT_DAY_NUMBER,
    ) -> Optional[str]:
        """
        Open a session on `handle` and cache the identity for auto-restart.

        Returns the new session id, or None when the row could not be
        written (the identity stays cached so a later visibility change can
        try again).
        """
        self.validate_identifier(participant_id, "participant_id")
        self.validate_identifier(condition, "condition")
        self.validate_non_negative_int(day_number, "day_number")

        if handle.is_open and self.get_config("sessions.close_previous_on_start", True):
            await self.end_session(handle, SessionEndReason.NORMAL)

        handle.cache_identity(participant_id, condition, day_number)
        started_at = self.now()

        async with LogContext(participant_id=participant_id, operation="start_session"):
            try:
                session_id = await self.store.insert_record(
                    RecordKind.SESSION,
                    {
                        "participant_id": participant_id,
                        "condition": condition,
                        "day_number": day_number,
                        "started_at": started_at,
                    },
                )
            except StoreUnavailableError as exc:
                self.log_error("start_session", exc, participant_id=participant_id)
                return None

            handle.open(session_id, started_at)
            self.log_operation(
                "start_session",
                session_id=session_id,
                handle_id=handle.handle_id,
                day_number=day_number,
            )
            return session_id

    def _close_fields(self, handle: SessionHandle, reason: SessionEndReason) -> Dict[str, Any]:
        assert handle.started_at is not None
        ended_at = self.now()
        return {
            "ended_at": ended_at,
            "duration_ms": duration_ms(handle.started_at, ended_at),
            "end_reason": reason.value,
        }

    async def _write_close(self, session_id: str, fields: Dict[str, Any]) -> bool:
        async with LogContext(session_id=session_id, operation="end_session"):
            try:
                updated = await self.store.update_record(
                    RecordKind.SESSION, {"id": session_id}, fields
                )
            except StoreUnavailableError as exc:
                self.log_error("end_session", exc, session_id=session_id)
                return False

            if not updated:
                self.log.warning("Session row missing at close", extra={"session_id": session_id})
            else:
                self.log_operation(
                    "end_session",
                    end_reason=fields["end_reason"],
                    duration_ms=fields["duration_ms"],
                )
            return updated

    async def end_session(
        self, handle: SessionHandle, reason: ReasonLike = SessionEndReason.NORMAL
    ) -> bool:
        """
        Close the session open on `handle`.

        No-op (returns False) when nothing is open. Returns True when the
        close was written.
        """
        reason = SessionEndReason(reason)
        if not handle.is_open:
            return False

        session_id = handle.session_id
        assert session_id is not None
        fields = self._close_fields(handle, reason)
        handle.close()
        return await self._write_close(session_id, fields)

    def end_session_nowait(
        self, handle: SessionHandle, reason: ReasonLike
    ) -> Optional[asyncio.Task[Any]]:
        """
        Close without waiting for the write (page teardown path).

        The handle is closed immediately; the row update is best-effort.
        """
        reason = SessionEndReason(reason)
        if not handle.is_open:
            return None

        session_id = handle.session_id
        assert session_id is not None
        fields = self._close_fields(handle, reason)
        handle.close()
        return self.dispatcher.dispatch(
            self._write_close(session_id, fields), name=f"session-close-{reason.value}"
        )

    # ========================================================================
    # Lifecycle signals
    # ========================================================================

    async def on_tab_hidden(self, handle: SessionHandle) -> bool:
        return await self.end_session(handle, SessionEndReason.TAB_HIDDEN)

    async def on_tab_visible(self, handle: SessionHandle) -> Optional[str]:
        """Restart with the cached identity; no-op after logout or while open."""
        if not handle.has_identity or handle.is_open:
            return None
        assert handle.participant_id is not None and handle.condition is not None
        return await self.start_session(
            handle, handle.participant_id, handle.condition, handle.day_number
        )

    def on_before_unload(self, handle: SessionHandle) -> Optional[asyncio.Task[Any]]:
        return self.end_session_nowait(handle, SessionEndReason.PAGE_UNLOAD)

    def on_page_hide(self, handle: SessionHandle) -> Optional[asyncio.Task[Any]]:
        return self.end_session_nowait(handle, SessionEndReason.PAGE_HIDE)

    async def logout(self, handle: SessionHandle) -> bool:
        closed = await self.end_session(handle, SessionEndReason.LOGOUT)
        handle.clear_identity()
        return closed

    # ========================================================================
    # Queries
    # ========================================================================

    async def list_open_sessions(self, participant_id: str) -> List[Record]:
        """Sessions with no end time. Several means several tabs (or a lost close)."""
        try:
            return await self.store.query_records(
                RecordKind.SESSION, {"participant_id": participant_id, "ended_at": None}
            )
        except StoreUnavailableError as exc:
            self.log.warning(
                "Open-session query failed",
                extra={"participant_id": participant_id, "error": str(exc)},
            )
            return []
