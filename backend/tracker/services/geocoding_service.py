"""
Geocoding service for turning location text into coordinates and address parts.

Mapbox is tried first when an access token is configured; Nominatim
(OpenStreetMap, no key required) is the fallback. Failures never raise:
the result simply carries no coordinates and an ``error`` string.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from tracker.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class GeocodeResult:
    """Outcome of a forward or reverse lookup."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    formatted_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def has_address_components(self) -> bool:
        return any((self.city, self.state, self.country))


def valid_coordinates(latitude: float, longitude: float) -> bool:
    """Check latitude/longitude are within range."""
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


class GeocodingService:
    """Forward and reverse geocoding with provider fallback and a memo cache."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        mapbox_token: Optional[str] = None,
    ):
        self.client = client or httpx.Client(timeout=settings.GEOCODING_TIMEOUT)
        self.mapbox_token = settings.MAPBOX_ACCESS_TOKEN if mapbox_token is None else mapbox_token
        self._cache: Dict[str, GeocodeResult] = {}
        self._reverse_cache: Dict[str, GeocodeResult] = {}

    def geocode(self, location: str) -> GeocodeResult:
        """Look up coordinates and address components for free text."""
        clean_location = (location or "").strip()
        if not clean_location:
            return GeocodeResult(error="Empty location")
        
        cache_key = clean_location.lower()
        if cache_key in self._cache:
            return self._cache[cache_key]
        
        errors: List[str] = []
        result = None
        if self.mapbox_token:
            result = self._geocode_mapbox(clean_location)
            if not result.has_coordinates:
                errors.append(result.error or "Mapbox failed")
                logger.info(f"Falling back to Nominatim for: {clean_location}")
                result = None
        
        if result is None:
            result = self._geocode_nominatim(clean_location)
            if not result.has_coordinates:
                errors.append(result.error or "Nominatim failed")
                result = GeocodeResult(
                    error=f'Failed to geocode "{clean_location}": {", ".join(errors)}'
                )
        
        # Only successful lookups are cached
        if result.has_coordinates:
            self._cache[cache_key] = result
        return result

    def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        """Look up the address for coordinates."""
        if not valid_coordinates(latitude, longitude):
            return GeocodeResult(latitude=latitude, longitude=longitude, error="Invalid coordinates")
        
        cache_key = f"{latitude:.6f},{longitude:.6f}"
        if cache_key in self._reverse_cache:
            return self._reverse_cache[cache_key]
        
        errors: List[str] = []
        result = None
        if self.mapbox_token:
            result = self._reverse_mapbox(latitude, longitude)
            if result.error or not result.formatted_address:
                errors.append(result.error or "Mapbox failed")
                result = None
        
        if result is None:
            result = self._reverse_nominatim(latitude, longitude)
            if result.error or not result.formatted_address:
                errors.append(result.error or "Nominatim failed")
                result = GeocodeResult(
                    latitude=latitude,
                    longitude=longitude,
                    error=f"Failed to reverse geocode coordinates: {', '.join(errors)}",
                )
        
        if result.formatted_address:
            self._reverse_cache[cache_key] = result
        return result

    def _get_json(self, url: str, params: Optional[dict] = None, headers: Optional[dict] = None):
        response = self.client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    def _geocode_mapbox(self, location: str) -> GeocodeResult:
        url = f"{settings.MAPBOX_API_URL}/{quote(location)}.json"
        try:
            data = self._get_json(url, params={"access_token": self.mapbox_token, "limit": 1})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Mapbox geocoding error for {location}: {e}")
            return GeocodeResult(error="Mapbox API error")
        
        features = data.get("features") or []
        if not features:
            return GeocodeResult(error="No results found")
        
        feature = features[0]
        longitude, latitude = feature["center"]
        result = GeocodeResult(
            latitude=latitude,
            longitude=longitude,
            formatted_address=feature.get("place_name"),
        )
        _apply_mapbox_context(result, feature.get("context") or [])
        
        # A bare city search has no "place" context entry
        if not result.city and "place" in (feature.get("place_type") or []):
            result.city = feature.get("text")
        return result

    def _reverse_mapbox(self, latitude: float, longitude: float) -> GeocodeResult:
        url = f"{settings.MAPBOX_API_URL}/{longitude},{latitude}.json"
        try:
            data = self._get_json(url, params={"access_token": self.mapbox_token, "limit": 1})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Mapbox reverse geocoding error for {latitude},{longitude}: {e}")
            return GeocodeResult(latitude=latitude, longitude=longitude, error="Mapbox API error")
        
        features = data.get("features") or []
        if not features:
            return GeocodeResult(latitude=latitude, longitude=longitude, error="No results found")
        
        feature = features[0]
        result = GeocodeResult(
            latitude=latitude,
            longitude=longitude,
            formatted_address=feature.get("place_name"),
        )
        _apply_mapbox_context(result, feature.get("context") or [])
        return result

    def _geocode_nominatim(self, location: str) -> GeocodeResult:
        try:
            data = self._get_json(
                f"{settings.NOMINATIM_URL}/search",
                params={"format": "json", "q": location, "limit": 1, "addressdetails": 1},
                headers={"User-Agent": settings.GEOCODING_USER_AGENT},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Nominatim geocoding error for {location}: {e}")
            return GeocodeResult(error="Nominatim API error")
        
        if not data:
            return GeocodeResult(error="No results found")
        
        first = data[0]
        result = GeocodeResult(
            latitude=float(first["lat"]),
            longitude=float(first["lon"]),
            formatted_address=first.get("display_name"),
        )
        _apply_nominatim_address(result, first.get("address") or {})
        return result

    def _reverse_nominatim(self, latitude: float, longitude: float) -> GeocodeResult:
        try:
            data = self._get_json(
                f"{settings.NOMINATIM_URL}/reverse",
                params={"format": "json", "lat": latitude, "lon": longitude},
                headers={"User-Agent": settings.GEOCODING_USER_AGENT},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Nominatim reverse geocoding error for {latitude},{longitude}: {e}")
            return GeocodeResult(latitude=latitude, longitude=longitude, error="Nominatim API error")
        
        if not data or not data.get("display_name"):
            return GeocodeResult(latitude=latitude, longitude=longitude, error="No results found")
        
        result = GeocodeResult(
            latitude=latitude,
            longitude=longitude,
            formatted_address=data["display_name"],
        )
        _apply_nominatim_address(result, data.get("address") or {})
        return result


def _apply_mapbox_context(result: GeocodeResult, context: list):
    """Copy place/region/country/postcode entries onto the result."""
    for item in context:
        item_id = item.get("id", "")
        if item_id.startswith("place."):
            result.city = item.get("text")
        elif item_id.startswith("region."):
            result.state = item.get("text")
        elif item_id.startswith("country."):
            result.country = item.get("text")
        elif item_id.startswith("postcode."):
            result.postal_code = item.get("text")


def _apply_nominatim_address(result: GeocodeResult, address: dict):
    result.city = address.get("city") or address.get("town") or address.get("village")
    result.state = address.get("state")
    result.country = address.get("country")
    result.postal_code = address.get("postcode")
