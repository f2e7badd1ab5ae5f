from .base import GeocodingProvider, empty_result, format_address
from .resolver import get_geocoding_provider, reset_geocoding_provider

__all__ = [
    "GeocodingProvider",
    "empty_result",
    "format_address",
    "get_geocoding_provider",
    "reset_geocoding_provider",
]
