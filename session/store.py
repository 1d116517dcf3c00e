"""In-memory session registry for the HTTP surface."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from core import SessionState

from .controller import SessionController


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySessionStore:
    """Thread-safe store of live session controllers keyed by session_id."""

    def __init__(self) -> None:
        self._controllers: Dict[str, SessionController] = {}
        self._created_at: Dict[str, datetime] = {}
        self._lock = Lock()

    def add(self, controller: SessionController) -> str:
        session_id = controller.session_id
        with self._lock:
            self._controllers[session_id] = controller
            self._created_at.setdefault(session_id, _utcnow())
        return session_id

    def get(self, session_id: str) -> Optional[SessionController]:
        with self._lock:
            return self._controllers.get(str(session_id or "").strip())

    def get_state(self, session_id: str) -> Optional[SessionState]:
        controller = self.get(session_id)
        return controller.state.model_copy(deep=True) if controller else None

    def remove(self, session_id: str) -> Optional[SessionController]:
        with self._lock:
            self._created_at.pop(session_id, None)
            return self._controllers.pop(session_id, None)

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._controllers, key=lambda item: self._created_at.get(item, _utcnow()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)
