"""
In-memory session cache with change notifications.
"""
import logging
from typing import Callable, List, Optional

from tracker.schemas.session import (
    SessionCreate, SessionFilters, SessionResponse, SessionUpdate, StrainAutofill
)
from tracker.services.session_service import get_latest_strain_autofill, validate_session_data

logger = logging.getLogger(__name__)

# callback(event, session); event is "loaded", "created", "updated", "deleted" or "cleared"
Listener = Callable[[str, Optional[SessionResponse]], None]


class SessionStore:
    """
    Owns the newest-first list of sessions shown by the UI.
    
    Writes go through ``backend`` (usually a ``HybridStorage``) and then
    update the cache; subscribers are told about every change.
    """

    def __init__(self, backend):
        self.backend = backend
        self._sessions: List[SessionResponse] = []
        self._listeners: List[Listener] = []

    @property
    def sessions(self) -> List[SessionResponse]:
        return list(self._sessions)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, session: Optional[SessionResponse] = None) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def load(self) -> List[SessionResponse]:
        """Refresh the cache from the backend."""
        self._sessions = list(self.backend.get_all())
        self._notify("loaded")
        return self.sessions

    def create(self, draft: SessionCreate) -> SessionResponse:
        # Nothing reaches the backend unless the draft is complete
        validate_session_data(draft)
        session = self.backend.create(draft)
        self._sessions.insert(0, session)
        self._notify("created", session)
        return session

    def update(self, session_id: str, changes: SessionUpdate) -> Optional[SessionResponse]:
        session = self.backend.update(session_id, changes)
        if session is None:
            return None
        for index, cached in enumerate(self._sessions):
            if cached.id == session_id:
                self._sessions[index] = session
                break
        self._notify("updated", session)
        return session

    def delete(self, session_id: str) -> bool:
        if not self.backend.delete(session_id):
            return False
        self._sessions = [session for session in self._sessions if session.id != session_id]
        self._notify("deleted")
        return True

    def clear(self) -> None:
        self.backend.clear()
        self._sessions = []
        self._notify("cleared")

    def list(self, filters: Optional[SessionFilters] = None) -> List[SessionResponse]:
        """Cached sessions narrowed by ``filters``; all of them in order without."""
        if filters is None or filters.is_empty():
            return self.sessions
        return filters.apply(self._sessions)

    def get_latest_strain_autofill(self, strain_name: str, vessel: Optional[str] = None) -> Optional[StrainAutofill]:
        return get_latest_strain_autofill(strain_name, self._sessions, vessel)
