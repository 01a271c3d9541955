"""
Tests for location parsing, resolution and maintenance.
"""
import inspect
from datetime import timedelta

import httpx
import pytest

from tracker.api.dependencies import get_geocoder
from tracker.core.exceptions import NotFoundError
from tracker.core.utils import utcnow
from tracker.main import app
from tracker.models.location import Location
from tracker.models.session import ConsumptionSession
from tracker.schemas.location import LocationCreate
from tracker.services import location_service
from tracker.services.geocoding_service import GeocodeResult, GeocodingService


class FakeGeocoder:
    """Returns canned results keyed by address."""

    def __init__(self, results):
        self.results = results
        self.calls = []

    def geocode(self, location):
        self.calls.append(location)
        return self.results.get(location, GeocodeResult(error="No results found"))


def add_legacy_session(db, location, **values):
    session = ConsumptionSession(
        date=values.pop("date", "2024-01-15"),
        time="19:30",
        location=location,
        vessel_category="Joint",
        vessel="Joint",
        strain_name="Blue Dream",
        quantity={"amount": 0.5, "unit": "joint portion", "type": "decimal"},
        **values
    )
    db.add(session)
    db.commit()
    return session


def test_parse_location_name_is_text_before_first_comma():
    parsed = location_service.parse_location_string("  Zilker Park , Austin, TX ")
    assert parsed.name == "Zilker Park"
    assert parsed.city == "Austin"
    assert parsed.state == "TX"
    assert parsed.full_address == "Zilker Park , Austin, TX"


def test_parse_location_with_fewer_than_two_commas():
    parsed = location_service.parse_location_string("Home, Austin")
    assert parsed.name == "Home"
    assert parsed.full_address == "Home, Austin"
    assert parsed.city is None
    assert parsed.state is None


def test_resolve_new_location_starts_at_one(db):
    location = location_service.resolve_location(db, "Beach, Santa Cruz, CA")
    db.commit()
    
    assert db.query(Location).count() == 1
    assert location.usage_count == 1
    assert location.city == "Santa Cruz"
    assert location.last_used_at is not None


def test_resolve_same_text_increments_usage(db):
    first = location_service.resolve_location(db, "Home, Austin, TX")
    db.commit()
    before = first.usage_count
    
    second = location_service.resolve_location(db, "Home, Austin, TX")
    db.commit()
    
    assert second.id == first.id
    assert second.usage_count == before + 1
    assert db.query(Location).count() == 1


def test_resolve_matches_on_name(db):
    first = location_service.resolve_location(db, "Home, Austin, TX")
    second = location_service.resolve_location(db, "Home")
    assert second.id == first.id
    assert second.usage_count == 2


def test_resolve_is_case_sensitive(db):
    location_service.resolve_location(db, "Home")
    location_service.resolve_location(db, "home")
    assert db.query(Location).count() == 2


def test_resolve_backfills_missing_coordinates_only(db):
    location = location_service.resolve_location(db, "Rooftop")
    assert location.latitude is None
    
    location_service.resolve_location(db, "Rooftop", 37.79, -122.40)
    assert (location.latitude, location.longitude) == (37.79, -122.40)
    
    location_service.resolve_location(db, "Rooftop", 10.0, 10.0)
    assert (location.latitude, location.longitude) == (37.79, -122.40)


def test_resolve_blank_text_returns_none(db):
    assert location_service.resolve_location(db, "   ") is None
    assert db.query(Location).count() == 0


def test_suggestions_rank_favorites_first(db):
    frequent = location_service.resolve_location(db, "Park Bench")
    location_service.resolve_location(db, "Park Bench")
    favorite = location_service.resolve_location(db, "Parking Garage")
    favorite.is_favorite = True
    location_service.resolve_location(db, "Home")
    db.commit()
    
    names = [location.name for location in location_service.get_location_suggestions(db, "PARK")]
    assert names == [favorite.name, frequent.name]


def test_toggle_favorite(db):
    location = location_service.resolve_location(db, "Home")
    db.commit()
    
    assert location_service.toggle_favorite(db, location.id).is_favorite is True
    assert location_service.get_favorite_locations(db)[0].id == location.id
    assert location_service.toggle_favorite(db, location.id).is_favorite is False


def test_toggle_favorite_unknown_id(db):
    with pytest.raises(NotFoundError):
        location_service.toggle_favorite(db, "missing")


def test_update_coordinates_propagates_to_linked_sessions(db):
    location = location_service.resolve_location(db, "Home")
    add_legacy_session(db, "Home", location_id=location.id)
    
    updated, count = location_service.update_location_coordinates(db, location.id, 30.27, -97.74, "Home, Austin, TX")
    
    assert count == 1
    assert updated.full_address == "Home, Austin, TX"
    session = db.query(ConsumptionSession).one()
    db.refresh(session)
    assert (session.latitude, session.longitude) == (30.27, -97.74)


def test_update_coordinates_for_legacy_group(db):
    add_legacy_session(db, "Old Spot")
    add_legacy_session(db, "Old Spot")
    
    location, count = location_service.update_location_coordinates(db, "legacy-Old Spot", 1.5, 2.5)
    
    assert location is None
    assert count == 2


def test_update_coordinates_unknown_legacy_group(db):
    with pytest.raises(NotFoundError):
        location_service.update_location_coordinates(db, "legacy-Nowhere", 1.0, 1.0)


def test_unique_locations_merges_normalized_and_legacy(db):
    location = location_service.resolve_location(db, "Home")
    add_legacy_session(db, "Home", location_id=location.id)
    add_legacy_session(db, "Beach")
    add_legacy_session(db, "Beach")
    
    unique = location_service.get_unique_locations(db)
    
    assert [(item.id, item.session_count, item.is_legacy) for item in unique] == [
        ("legacy-Beach", 2, True),
        (location.id, 1, False),
    ]


def test_migrate_links_legacy_sessions_and_recounts(db):
    add_legacy_session(db, "Beach, Santa Cruz, CA", latitude=36.96, longitude=-122.02)
    add_legacy_session(db, "Beach, Santa Cruz, CA")
    add_legacy_session(db, "")
    
    report = location_service.migrate_session_locations(db)
    
    assert report.migrated == 2
    assert report.errors == []
    assert report.locations_total == 1
    location = db.query(Location).one()
    assert location.usage_count == 2
    assert location.latitude == 36.96
    assert db.query(ConsumptionSession).filter(ConsumptionSession.location_id == location.id).count() == 2


def test_recount_corrects_drift(db):
    location = location_service.resolve_location(db, "Home")
    location.usage_count = 9
    add_legacy_session(db, "Home", location_id=location.id)
    
    assert location_service.recount_location_usage(db) == 1
    assert location.usage_count == 1


def test_deduplicate_merges_into_oldest(db):
    now = utcnow()
    keeper = Location(name="Home", full_address="Home", usage_count=2, created_at=now - timedelta(days=1))
    duplicate = Location(name="home", full_address="HOME", usage_count=3, latitude=1.0, longitude=2.0,
                         created_at=now)
    other = Location(name="Beach", full_address="Beach", usage_count=1)
    db.add_all([keeper, duplicate, other])
    db.commit()
    add_legacy_session(db, "home", location_id=duplicate.id)
    
    report = location_service.deduplicate_locations(db)
    
    assert report.merged == 1
    assert report.kept == 2
    assert report.sessions_repointed == 1
    assert db.query(Location).count() == 2
    db.refresh(keeper)
    assert keeper.usage_count == 5
    assert (keeper.latitude, keeper.longitude) == (1.0, 2.0)
    assert db.query(ConsumptionSession).one().location_id == keeper.id


def test_backfill_fills_gaps_without_overwriting(db):
    known = Location(name="Office", full_address="Office, Austin, TX", latitude=30.0, longitude=-97.0,
                     usage_count=5)
    unknown = Location(name="Cabin", full_address="Cabin, Big Sur, CA", usage_count=1)
    missing = Location(name="Nowhere", full_address="Nowhere", usage_count=0)
    db.add_all([known, unknown, missing])
    db.commit()
    geocoder = FakeGeocoder({
        "Office, Austin, TX": GeocodeResult(latitude=1.0, longitude=1.0, city="Austin", state="Texas",
                                            country="United States"),
        "Cabin, Big Sur, CA": GeocodeResult(latitude=36.27, longitude=-121.81, city="Big Sur",
                                            state="California", country="United States"),
    })
    
    report = location_service.backfill_locations(db, geocoder, limit=10, delay=0)
    
    assert report.total == 3
    assert report.updated == 2
    assert report.failed == 1
    assert "Nowhere" in report.errors[0]
    assert (known.latitude, known.longitude) == (30.0, -97.0)
    assert known.state == "Texas"
    assert (unknown.latitude, unknown.longitude) == (36.27, -121.81)
    assert geocoder.calls[0] == "Office, Austin, TX"


def test_locations_api(client, db):
    response = client.post("/api/locations", json={"name": "Studio", "city": "Austin"})
    assert response.status_code == 201
    location_id = response.json()["id"]
    assert response.json()["full_address"] == "Studio"
    assert response.json()["usage_count"] == 0
    
    response = client.post(f"/api/locations/{location_id}/favorite")
    assert response.json()["is_favorite"] is True
    
    response = client.get("/api/locations", params={"favorites": "true"})
    assert [item["id"] for item in response.json()] == [location_id]
    
    response = client.get("/api/locations", params={"q": "stud"})
    assert response.json()[0]["name"] == "Studio"
    
    response = client.put("/api/locations/coordinates", json={
        "location_id": location_id, "latitude": 30.2, "longitude": -97.7
    })
    assert response.status_code == 200
    assert response.json()["location"]["latitude"] == 30.2
    assert response.json()["updated_sessions"] == 0


def test_locations_api_rejects_bad_coordinates(client):
    response = client.put("/api/locations/coordinates", json={
        "location_id": "x", "latitude": 91, "longitude": 0
    })
    assert response.status_code == 422


def test_location_maintenance_api(client, db):
    add_legacy_session(db, "Beach")
    
    response = client.post("/api/locations/maintenance", json={"action": "migrate"})
    
    assert response.status_code == 200
    assert response.json()["migration"]["migrated"] == 1
    assert response.json()["backfill"] is None
    assert client.get("/api/locations/unique").json()[0]["is_legacy"] is False


def test_geocode_and_backfill_api_use_injected_geocoder(client, db):
    geocoder = FakeGeocoder({
        "Beach": GeocodeResult(latitude=27.8, longitude=-97.1, city="Corpus Christi", state="TX")
    })
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    location_service.create_location(db, LocationCreate(name="Beach"))
    
    response = client.get("/api/locations/geocode", params={"q": "Beach"})
    assert response.status_code == 200
    assert response.json()["latitude"] == 27.8
    
    response = client.post("/api/locations/backfill", json={"limit": 5})
    assert response.status_code == 200
    assert response.json()["updated"] == 1
    assert client.get("/api/locations").json()[0]["city"] == "Corpus Christi"


def test_backfill_retries_after_transient_geocoder_failure(db):
    responses = [httpx.Response(503), httpx.Response(200, json=[{"lat": "30.26", "lon": "-97.75"}])]
    client = httpx.Client(transport=httpx.MockTransport(lambda request: responses.pop(0)))
    geocoder = GeocodingService(client=client, mapbox_token="")
    location_service.create_location(db, LocationCreate(name="Zilker Park"))
    
    first = location_service.backfill_locations(db, geocoder, delay=0)
    second = location_service.backfill_locations(db, geocoder, delay=0)
    
    assert (first.updated, first.failed) == (0, 1)
    assert (second.updated, second.failed) == (1, 0)
    assert db.query(Location).one().latitude == 30.26


@pytest.mark.parametrize("path", [
    "/api/locations/geocode",
    "/api/locations/reverse-geocode",
    "/api/locations/backfill",
    "/api/locations/maintenance",
])
def test_geocoding_routes_run_off_the_event_loop(path):
    endpoint = next(route.endpoint for route in app.routes if getattr(route, "path", None) == path)
    assert not inspect.iscoroutinefunction(endpoint)
