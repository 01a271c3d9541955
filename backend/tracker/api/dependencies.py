"""
Shared API dependencies.
"""
from tracker.services.geocoding_service import GeocodingService
from tracker.services.image_service import ImageStorage

_geocoder = None


def get_geocoder() -> GeocodingService:
    """Process-wide geocoder so its lookup cache is shared between requests."""
    global _geocoder
    if _geocoder is None:
        _geocoder = GeocodingService()
    return _geocoder


def get_image_storage() -> ImageStorage:
    return ImageStorage()
