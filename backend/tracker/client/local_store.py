"""
On-device session store kept in a single JSON file.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from tracker.core.config import settings
from tracker.core.exceptions import LocalStoreError
from tracker.core.utils import utcnow
from tracker.db.base import generate_id
from tracker.schemas.session import (
    SessionCreate, SessionFilters, SessionResponse, SessionUpdate
)
from tracker.services.session_service import (
    check_quantity_matches_vessel, clean_updates, validate_session_data
)

logger = logging.getLogger(__name__)


class LocalSessionStore:
    """
    Sessions stored newest-first in a JSON array file.
    
    Writes go to a temporary file that replaces the store in one step, so
    a failed write never leaves a half-written file behind.
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path or settings.LOCAL_STORE_PATH)

    def _load(self) -> List[SessionResponse]:
        if not self.path.exists():
            return []
        try:
            return parse_records(self.path.read_text(encoding="utf-8"))
        except LocalStoreError:
            logger.error(f"Local session store {self.path} is unreadable")
            raise

    def _save(self, sessions: List[SessionResponse]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = dump_records(sessions)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get_all(self) -> List[SessionResponse]:
        return self._load()

    def get_filtered(self, filters: SessionFilters) -> List[SessionResponse]:
        return filters.apply(self._load())

    def get(self, session_id: str) -> Optional[SessionResponse]:
        for session in self._load():
            if session.id == session_id:
                return session
        return None

    def create(self, draft: SessionCreate) -> SessionResponse:
        """Validate, stamp id and timestamps, and prepend the new session."""
        validate_session_data(draft)
        now = utcnow()
        session = SessionResponse.model_validate({
            **draft.model_dump(),
            "id": generate_id(),
            "created_at": now,
            "updated_at": now,
        })
        sessions = self._load()
        sessions.insert(0, session)
        self._save(sessions)
        return session

    def update(self, session_id: str, changes: SessionUpdate) -> Optional[SessionResponse]:
        """Merge the sent fields into the stored record, keeping its position."""
        sessions = self._load()
        for index, session in enumerate(sessions):
            if session.id != session_id:
                continue
            
            updates = clean_updates(changes)
            merged = SessionResponse.model_validate({
                **session.model_dump(),
                **updates,
                "updated_at": utcnow(),
            })
            check_quantity_matches_vessel(merged.vessel_category, merged.quantity)
            sessions[index] = merged
            self._save(sessions)
            return merged
        return None

    def delete(self, session_id: str) -> bool:
        sessions = self._load()
        remaining = [session for session in sessions if session.id != session_id]
        if len(remaining) == len(sessions):
            return False
        self._save(remaining)
        return True

    def clear(self) -> None:
        self._save([])

    def export_data(self) -> str:
        return dump_records(self._load())

    def import_data(self, json_text: str) -> int:
        """
        Replace every stored session with the records in ``json_text``.
        
        Raises:
            LocalStoreError: if the text is not a JSON array of sessions;
                the stored sessions are left untouched
        """
        sessions = parse_records(json_text)
        self._save(sessions)
        logger.info(f"Imported {len(sessions)} sessions into local storage")
        return len(sessions)

    def load_sample_data(self) -> List[SessionResponse]:
        """Fill an empty store with the sample sessions."""
        from tracker.db.sample_data import SAMPLE_SESSIONS
        
        sessions = self._load()
        if sessions:
            return sessions
        sessions = [
            SessionResponse.model_validate({**record, "id": generate_id(), "updated_at": record["created_at"]})
            for record in reversed(SAMPLE_SESSIONS)
        ]
        self._save(sessions)
        return sessions


def dump_records(sessions: List[SessionResponse]) -> str:
    """Sessions as an indented JSON array document."""
    return json.dumps([session.model_dump(mode="json") for session in sessions], indent=2)


def parse_records(json_text: str) -> List[SessionResponse]:
    """
    Parse a JSON array of session records.
    
    Raises:
        LocalStoreError: on malformed JSON or records
    """
    try:
        data = json.loads(json_text)
    except ValueError as e:
        raise LocalStoreError(f"Invalid JSON: {e}")
    if not isinstance(data, list):
        raise LocalStoreError("Expected a JSON array of sessions")
    try:
        return [SessionResponse.model_validate(record) for record in data]
    except SchemaValidationError as e:
        raise LocalStoreError(f"Invalid session record: {e}")
