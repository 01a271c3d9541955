"""
Tests for the geocoding collaborator using a mocked HTTP transport.
"""
import httpx

from tracker.services.geocoding_service import GeocodingService

MAPBOX_FEATURE = {
    "features": [{
        "center": [-97.7431, 30.2672],
        "place_name": "Austin, Texas, United States",
        "place_type": ["place"],
        "text": "Austin",
        "context": [
            {"id": "region.1", "text": "Texas"},
            {"id": "country.1", "text": "United States"},
        ],
    }]
}

NOMINATIM_RESULT = [{
    "lat": "36.2704",
    "lon": "-121.8081",
    "display_name": "Big Sur, Monterey County, California, United States",
    "address": {"village": "Big Sur", "state": "California", "country": "United States", "postcode": "93920"},
}]


def make_service(handler, token=""):
    calls = []

    def recording_handler(request):
        calls.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(recording_handler))
    return GeocodingService(client=client, mapbox_token=token), calls


def test_mapbox_result_with_components():
    service, calls = make_service(lambda request: httpx.Response(200, json=MAPBOX_FEATURE), token="pk.test")
    
    result = service.geocode("Austin, TX")
    
    assert (result.latitude, result.longitude) == (30.2672, -97.7431)
    assert result.city == "Austin"
    assert result.state == "Texas"
    assert result.country == "United States"
    assert calls[0].url.host == "api.mapbox.com"


def test_falls_back_to_nominatim_and_sends_user_agent():
    def handler(request):
        if request.url.host == "api.mapbox.com":
            return httpx.Response(401, json={"message": "Not Authorized"})
        return httpx.Response(200, json=NOMINATIM_RESULT)

    service, calls = make_service(handler, token="pk.bad")
    
    result = service.geocode("Big Sur, CA")
    
    assert result.has_coordinates
    assert result.city == "Big Sur"
    assert result.postal_code == "93920"
    assert calls[-1].headers["User-Agent"]


def test_failure_returns_error_without_raising():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    service, _ = make_service(handler)
    
    result = service.geocode("Somewhere")
    
    assert not result.has_coordinates
    assert "Somewhere" in result.error


def test_results_are_cached_by_normalized_text():
    service, calls = make_service(lambda request: httpx.Response(200, json=NOMINATIM_RESULT))
    service.geocode("Big Sur, CA")
    service.geocode("  big sur, ca ")
    assert len(calls) == 1


def test_failed_lookup_is_retried_on_next_call():
    responses = [httpx.Response(503), httpx.Response(200, json=NOMINATIM_RESULT)]
    service, calls = make_service(lambda request: responses.pop(0))
    
    first = service.geocode("Big Sur, CA")
    second = service.geocode("Big Sur, CA")
    
    assert not first.has_coordinates
    assert second.has_coordinates
    assert len(calls) == 2


def test_provider_error_hides_request_details():
    service, _ = make_service(lambda request: httpx.Response(500), token="pk.secret")
    
    result = service.geocode("Somewhere")
    
    assert "pk.secret" not in result.error
    assert "http" not in result.error
    assert "Mapbox API error" in result.error


def test_reverse_geocode_checks_range():
    service, calls = make_service(lambda request: httpx.Response(200, json={}))
    result = service.reverse_geocode(120.0, 0.0)
    assert result.error == "Invalid coordinates"
    assert calls == []


def test_reverse_geocode_nominatim():
    payload = {"display_name": "Zilker Park, Austin", "address": {"city": "Austin", "state": "Texas"}}
    service, _ = make_service(lambda request: httpx.Response(200, json=payload))
    result = service.reverse_geocode(30.26, -97.77)
    assert result.formatted_address == "Zilker Park, Austin"
    assert result.city == "Austin"
