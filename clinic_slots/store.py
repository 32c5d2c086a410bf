from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List

from .schedule.controller import SlotSessionController
from .schemas import Notification


@dataclass
class ViewSession:
    session_id: str
    doctor_id: int
    controller: SlotSessionController | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notifications: List[Notification] = field(default_factory=list)


class InMemoryStore:
    def __init__(self) -> None:
        self.sessions: Dict[str, ViewSession] = {}

    def create_session(self, doctor_id: int) -> ViewSession:
        session_id = uuid.uuid4().hex
        session = ViewSession(session_id=session_id, doctor_id=doctor_id)
        self.sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> ViewSession:
        return self.sessions[session_id]

    def add_notification(self, session_id: str, notification: Notification) -> None:
        session = self.sessions.get(session_id)
        if session is not None:
            session.notifications.append(notification)

    def list_notifications(self, session_id: str) -> List[Notification]:
        return self.sessions[session_id].notifications

    def close_session(self, session_id: str) -> ViewSession:
        session = self.sessions.pop(session_id)
        if session.controller is not None:
            session.controller.close()
        return session
