"""
Tests for strain autofill from past sessions.
"""
from tracker.schemas.session import SessionResponse
from tracker.services.session_service import get_latest_strain_autofill


def make_session(**overrides):
    values = {
        "id": "session-id",
        "date": "2026-01-01",
        "time": "12:00",
        "location": "Home",
        "vessel_category": "Pipe",
        "vessel": "Default",
        "strain_name": "Unknown",
        "quantity": {"amount": 1, "unit": "bowl size", "type": "size_category"},
        "created_at": "2026-01-01T12:00:00Z",
        "updated_at": "2026-01-01T12:00:00Z",
    }
    values.update(overrides)
    return SessionResponse.model_validate(values)


def test_returns_none_when_no_matching_strain():
    sessions = [make_session(strain_name="OG Kush")]
    assert get_latest_strain_autofill("Blue Dream", sessions) is None


def test_blank_strain_never_matches():
    sessions = [make_session(strain_name="OG Kush")]
    assert get_latest_strain_autofill("   ", sessions) is None


def test_matches_case_insensitively_with_trimming():
    sessions = [make_session(
        strain_name="Blue Dream",
        strain_type="Hybrid",
        thc_percentage=23.5,
        purchased_legally=True,
        state_purchased="CA",
    )]
    result = get_latest_strain_autofill("  blue dream  ", sessions)
    assert result.model_dump() == {
        "strain_type": "Hybrid",
        "thc_percentage": 23.5,
        "purchased_legally": True,
        "state_purchased": "CA",
    }


def test_returns_metadata_from_most_recent_match():
    sessions = [
        make_session(id="older", strain_name="Gelato", strain_type="Indica", thc_percentage=18.2,
                     state_purchased="CO", created_at="2026-01-15T10:00:00Z"),
        make_session(id="newest", strain_name="gelato", strain_type="Hybrid", thc_percentage=25.1,
                     purchased_legally=False, state_purchased="", created_at="2026-02-10T10:00:00Z"),
        make_session(id="other-strain", strain_name="Runtz", strain_type="Hybrid", thc_percentage=20.0,
                     state_purchased="WA", created_at="2026-02-12T10:00:00Z"),
    ]
    result = get_latest_strain_autofill("Gelato", sessions)
    assert result.model_dump() == {
        "strain_type": "Hybrid",
        "thc_percentage": 25.1,
        "purchased_legally": False,
        "state_purchased": "",
    }


def test_missing_metadata_defaults():
    result = get_latest_strain_autofill("Gelato", [make_session(strain_name="Gelato")])
    assert result.strain_type == ""
    assert result.thc_percentage is None
    assert result.state_purchased == ""


def test_vessel_filter_limits_candidates():
    sessions = [
        make_session(strain_name="Gelato", vessel="Glass Spoon", strain_type="Indica",
                     created_at="2026-01-15T10:00:00Z"),
        make_session(strain_name="Gelato", vessel="Vape Pen", strain_type="Hybrid",
                     created_at="2026-02-10T10:00:00Z"),
    ]
    assert get_latest_strain_autofill("Gelato", sessions, vessel=" glass spoon ").strain_type == "Indica"
    assert get_latest_strain_autofill("Gelato", sessions).strain_type == "Hybrid"
    assert get_latest_strain_autofill("Gelato", sessions, vessel="Bong") is None
