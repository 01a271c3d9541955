"""
Session store backed by the REST API.
"""
import logging
from typing import List, Optional

import httpx

from tracker.core.config import settings
from tracker.core.exceptions import RemoteStoreError
from tracker.schemas.session import (
    BatchResult, SessionCreate, SessionFilters, SessionResponse, SessionUpdate
)

logger = logging.getLogger(__name__)

SESSIONS_PATH = "/api/sessions"


class RemoteSessionStore:
    """
    Talks to ``/api/sessions`` over HTTP.
    
    Any ``httpx.Client`` works, including ``fastapi.testclient.TestClient``.
    Non-success responses raise ``RemoteStoreError``; 404 on a single
    record is reported as "not found" instead.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client or httpx.Client(
            base_url=base_url or settings.API_BASE_URL,
            timeout=settings.REMOTE_TIMEOUT if timeout is None else timeout,
        )

    def _request(self, method: str, path: str, allow_not_found: bool = False, **kwargs) -> httpx.Response:
        response = self.client.request(method, path, **kwargs)
        if allow_not_found and response.status_code == 404:
            return response
        if response.is_error:
            raise RemoteStoreError(_error_message(response), response.status_code)
        return response

    def get_all(self) -> List[SessionResponse]:
        response = self._request("GET", SESSIONS_PATH)
        return [SessionResponse.model_validate(item) for item in response.json()]

    def get_filtered(self, filters: SessionFilters) -> List[SessionResponse]:
        response = self._request("GET", SESSIONS_PATH, params=filters.to_query_params())
        return [SessionResponse.model_validate(item) for item in response.json()]

    def get(self, session_id: str) -> Optional[SessionResponse]:
        response = self._request("GET", f"{SESSIONS_PATH}/{session_id}", allow_not_found=True)
        if response.status_code == 404:
            return None
        return SessionResponse.model_validate(response.json())

    def create(self, draft: SessionCreate) -> SessionResponse:
        response = self._request("POST", SESSIONS_PATH, json=draft.model_dump(mode="json"))
        return SessionResponse.model_validate(response.json())

    def update(self, session_id: str, changes: SessionUpdate) -> Optional[SessionResponse]:
        response = self._request(
            "PUT",
            f"{SESSIONS_PATH}/{session_id}",
            allow_not_found=True,
            json=changes.model_dump(mode="json", exclude_unset=True),
        )
        if response.status_code == 404:
            return None
        return SessionResponse.model_validate(response.json())

    def delete(self, session_id: str) -> bool:
        response = self._request("DELETE", f"{SESSIONS_PATH}/{session_id}", allow_not_found=True)
        return response.status_code != 404

    def clear(self) -> None:
        self._request("DELETE", SESSIONS_PATH)

    def migrate(self, records: List[dict]) -> BatchResult:
        """Post device-local records to the bulk migration endpoint."""
        response = self._request("POST", "/api/migrate", json={"sessions": records})
        return BatchResult.model_validate(response.json())

    def is_available(self) -> bool:
        """True when the API answers and reports a connected database."""
        try:
            response = self.client.get("/api/health")
        except httpx.HTTPError as e:
            logger.info(f"Database availability check failed: {e}")
            return False
        return response.is_success and response.json().get("database") == "connected"


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, dict):
        detail = detail.get("error")
    return f"{response.request.method} {response.request.url.path} failed with {response.status_code}" + (
        f": {detail}" if detail else ""
    )
