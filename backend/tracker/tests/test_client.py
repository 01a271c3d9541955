"""
Tests for the client-side stores and the remote/local fallback.
"""
import json

import httpx
import pytest

from tracker.client.hybrid import HybridStorage
from tracker.client.local_store import LocalSessionStore
from tracker.client.remote_store import RemoteSessionStore
from tracker.client.store import SessionStore
from tracker.core.exceptions import LocalStoreError, RemoteStoreError, ValidationError
from tracker.schemas.session import SessionCreate, SessionFilters, SessionUpdate


def unreachable(request):
    raise httpx.ConnectError("connection refused", request=request)


def failing_remote():
    return RemoteSessionStore(client=httpx.Client(
        base_url="http://tracker.invalid",
        transport=httpx.MockTransport(unreachable),
    ))


def server_error_remote():
    return RemoteSessionStore(client=httpx.Client(
        base_url="http://tracker.invalid",
        transport=httpx.MockTransport(lambda request: httpx.Response(503, json={"detail": "down"})),
    ))


@pytest.fixture
def local(tmp_path):
    return LocalSessionStore(tmp_path / "sessions.json")


@pytest.fixture
def draft(session_payload):
    return SessionCreate(**session_payload)


def test_create_falls_back_to_local_when_remote_unreachable(local, draft):
    """Test a failing remote store still yields a stored session."""
    storage = HybridStorage(failing_remote(), local)
    
    session = storage.create(draft)
    
    assert session.id
    assert session.created_at is not None
    assert session.updated_at is not None
    assert [item.id for item in storage.get_all()] == [session.id]


def test_non_success_response_also_falls_back(local, draft):
    storage = HybridStorage(server_error_remote(), local)
    session = storage.create(draft)
    assert storage.get(session.id).strain_name == "Gelato"
    assert storage.delete(session.id) is True
    assert storage.get_all() == []


def test_remote_store_against_api(client, local, draft):
    remote = RemoteSessionStore(client=client)
    storage = HybridStorage(remote, local)
    
    session = storage.create(draft)
    
    assert session.location_id is not None
    assert local.get_all() == []
    assert storage.get(session.id).who_with == ["Sam", "Riley"]
    assert storage.get("missing") is None
    
    updated = storage.update(session.id, SessionUpdate(comments="Smooth"))
    assert updated.comments == "Smooth"
    assert storage.update("missing", SessionUpdate(comments="x")) is None
    
    filtered = storage.get_filtered(SessionFilters(strain_name="gel"))
    assert [item.id for item in filtered] == [session.id]
    assert storage.is_database_available() is True


def test_failing_remote_reports_database_unavailable(local):
    assert HybridStorage(failing_remote(), local).is_database_available() is False


def test_sync_pushes_local_only_sessions(client, local, draft):
    local_session = local.create(draft)
    remote = RemoteSessionStore(client=client)
    already_remote = remote.create(draft)
    local.import_data(json.dumps([
        local_session.model_dump(mode="json"),
        already_remote.model_dump(mode="json"),
    ]))
    
    result = HybridStorage(remote, local).sync_to_remote()
    
    assert result.synced == 1
    assert result.errors == []
    assert len(remote.get_all()) == 2
    assert len(local.get_all()) == 2


def test_sync_requires_reachable_remote(local, draft):
    local.create(draft)
    with pytest.raises(RemoteStoreError):
        HybridStorage(failing_remote(), local).sync_to_remote()


def test_migrate_to_database(client, local, draft):
    local.create(draft)
    local.create(draft)
    result = HybridStorage(RemoteSessionStore(client=client), local).migrate_to_database()
    assert result.imported == 2
    assert client.get("/api/sessions/count").json() == {"count": 2}


def test_export_reads_remote_first(client, local, draft):
    local.create(draft)
    storage = HybridStorage(RemoteSessionStore(client=client), local)
    assert json.loads(storage.export_data()) == []
    
    storage = HybridStorage(failing_remote(), local)
    assert len(json.loads(storage.export_data())) == 1


def test_import_malformed_json_leaves_data_untouched(local, draft):
    session = local.create(draft)
    storage = HybridStorage(failing_remote(), local)
    
    with pytest.raises(LocalStoreError):
        storage.import_data("{not json")
    with pytest.raises(LocalStoreError):
        storage.import_data('{"sessions": []}')
    
    assert [item.id for item in local.get_all()] == [session.id]


def test_local_store_is_newest_first_and_updates_in_place(local, draft):
    first = local.create(draft)
    second = local.create(draft)
    
    local.update(first.id, SessionUpdate(comments="edited"))
    
    sessions = local.get_all()
    assert [item.id for item in sessions] == [second.id, first.id]
    assert sessions[1].comments == "edited"
    assert sessions[1].updated_at >= first.updated_at


def test_local_store_rejects_incomplete_draft(local):
    with pytest.raises(ValidationError) as exc_info:
        local.create(SessionCreate(date="2024-01-01"))
    assert "strain_name" in exc_info.value.fields
    assert not local.path.exists()


def test_local_store_rejects_blank_required_field_on_update(local, draft):
    created = local.create(draft)
    
    with pytest.raises(ValidationError) as exc_info:
        local.update(created.id, SessionUpdate(strain_name=""))
    
    assert exc_info.value.fields == ["strain_name"]
    assert local.get(created.id).strain_name == draft.strain_name


def test_local_store_sample_data(local):
    sessions = local.load_sample_data()
    assert len(sessions) == 8
    assert sessions[0].date == "2024-02-02"
    assert SessionFilters(start_date="2024-01-16", end_date="2024-01-20").apply(sessions)[-1].date == "2024-01-16"


def test_session_store_cache_and_notifications(local, draft):
    store = SessionStore(HybridStorage(failing_remote(), local))
    events = []
    unsubscribe = store.subscribe(lambda event, session: events.append(event))
    
    first = store.create(draft)
    second = store.create(draft)
    assert [item.id for item in store.sessions] == [second.id, first.id]
    
    store.update(first.id, SessionUpdate(comments="edited"))
    assert store.sessions[1].comments == "edited"
    
    assert store.delete(second.id) is True
    assert store.delete("missing") is False
    assert [item.id for item in store.sessions] == [first.id]
    
    unsubscribe()
    store.clear()
    assert events == ["created", "created", "updated", "deleted"]
    assert store.sessions == []


def test_session_store_validates_before_backend():
    class ExplodingBackend:
        def create(self, draft):
            raise AssertionError("backend must not be called")
    
    store = SessionStore(ExplodingBackend())
    with pytest.raises(ValidationError):
        store.create(SessionCreate(date="2024-01-01", location="Home"))
    assert store.sessions == []


def test_session_store_filters_and_autofill(local):
    local.load_sample_data()
    store = SessionStore(local)
    store.load()
    
    in_range = store.list(SessionFilters(start_date="2024-01-16", end_date="2024-01-20"))
    assert [item.date for item in in_range] == ["2024-01-20", "2024-01-18", "2024-01-16"]
    assert len(store.list()) == 8
    assert store.get_latest_strain_autofill("blue dream").thc_percentage == 22.0
