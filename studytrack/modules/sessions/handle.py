"""
Per-tab session handle.

One `SessionHandle` exists per browser tab (or any other independent
client context). It carries the identity cached at login, used to restart
a session when the tab becomes visible again, and the session currently
open in that tab. Nothing about "the current session" lives in module
state, so two tabs for the same participant are two handles.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from studytrack.core.constants import DEFAULT_DAY_NUMBER


@dataclass
class SessionHandle:
    handle_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    participant_id: Optional[str] = None
    condition: Optional[str] = None
    day_number: int = DEFAULT_DAY_NUMBER

    session_id: Optional[str] = None
    started_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.session_id is not None

    @property
    def has_identity(self) -> bool:
        return self.participant_id is not None

    def cache_identity(self, participant_id: str, condition: str, day_number: int) -> None:
        self.participant_id = participant_id
        self.condition = condition
        self.day_number = day_number

    def clear_identity(self) -> None:
        self.participant_id = None
        self.condition = None
        self.day_number = DEFAULT_DAY_NUMBER

    def open(self, session_id: str, started_at: datetime) -> None:
        self.session_id = session_id
        self.started_at = started_at

    def close(self) -> None:
        self.session_id = None
        self.started_at = None
