"""
Dual-backend persistence: the REST API first, the on-device store on failure.
"""
import logging
from typing import Callable, List, Optional, TypeVar

import httpx

from tracker.client.local_store import LocalSessionStore, dump_records
from tracker.client.remote_store import RemoteSessionStore
from tracker.core.exceptions import RemoteStoreError
from tracker.schemas.session import (
    BatchResult, SessionCreate, SessionFilters, SessionResponse, SessionUpdate, SyncResult
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transport errors, non-success responses and unreadable response bodies
REMOTE_FAILURES = (httpx.HTTPError, RemoteStoreError, ValueError)


class HybridStorage:
    """
    Every operation tries the remote store and falls back to the local one.
    
    Fallback is not write-through: a session created locally while the
    server is down stays local until ``sync_to_remote`` is called.
    """

    def __init__(self, remote: RemoteSessionStore, local: LocalSessionStore):
        self.remote = remote
        self.local = local

    def _with_fallback(self, operation: str, remote_call: Callable[[], T], local_call: Callable[[], T]) -> T:
        try:
            return remote_call()
        except REMOTE_FAILURES as e:
            logger.warning(f"Remote {operation} failed, falling back to local storage: {e}")
            return local_call()

    def get_all(self) -> List[SessionResponse]:
        return self._with_fallback("get_all", self.remote.get_all, self.local.get_all)

    def get_filtered(self, filters: SessionFilters) -> List[SessionResponse]:
        return self._with_fallback(
            "get_filtered",
            lambda: self.remote.get_filtered(filters),
            lambda: self.local.get_filtered(filters),
        )

    def get(self, session_id: str) -> Optional[SessionResponse]:
        return self._with_fallback(
            "get",
            lambda: self.remote.get(session_id),
            lambda: self.local.get(session_id),
        )

    def create(self, draft: SessionCreate) -> SessionResponse:
        return self._with_fallback(
            "create",
            lambda: self.remote.create(draft),
            lambda: self.local.create(draft),
        )

    def update(self, session_id: str, changes: SessionUpdate) -> Optional[SessionResponse]:
        return self._with_fallback(
            "update",
            lambda: self.remote.update(session_id, changes),
            lambda: self.local.update(session_id, changes),
        )

    def delete(self, session_id: str) -> bool:
        return self._with_fallback(
            "delete",
            lambda: self.remote.delete(session_id),
            lambda: self.local.delete(session_id),
        )

    def clear(self) -> None:
        self._with_fallback("clear", self.remote.clear, self.local.clear)

    def export_data(self) -> str:
        """Every session, read remote-first, as one JSON array document."""
        return dump_records(self.get_all())

    def import_data(self, json_text: str) -> int:
        """Replace the local sessions wholesale; malformed input changes nothing."""
        return self.local.import_data(json_text)

    def is_database_available(self) -> bool:
        return self.remote.is_available()

    def sync_to_remote(self) -> SyncResult:
        """
        Create on the server every local session it does not have.
        
        Records are matched by id only. Remote records are never changed
        or deleted and local records are kept.
        
        Raises:
            RemoteStoreError: if the server's sessions cannot be listed
        """
        try:
            remote_ids = {session.id for session in self.remote.get_all()}
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Cannot reach the server to sync: {e}")
        
        synced = 0
        errors: List[str] = []
        for session in self.local.get_all():
            if session.id in remote_ids:
                continue
            try:
                self.remote.create(session.to_create())
                synced += 1
            except REMOTE_FAILURES as e:
                logger.error(f"Failed to sync session {session.id}: {e}", exc_info=True)
                errors.append(f"Session {session.id}: {e}")
        
        logger.info(f"Synced {synced} local sessions to the server")
        return SyncResult(synced=synced, errors=errors)

    def migrate_to_database(self) -> BatchResult:
        """Send every local session to the server's bulk migration endpoint."""
        records = [session.model_dump(mode="json") for session in self.local.get_all()]
        if not records:
            return BatchResult(success=True, imported=0, total=0)
        return self.remote.migrate(records)
