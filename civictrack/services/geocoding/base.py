from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class GeocodingProvider(ABC):
    """
    Abstract reverse-geocoding provider.

    Contract:
    - Input: latitude, longitude (floats)
    - Output: dict with well-known keys:
      {
        "formatted_address": str | None,
        "locality": str | None,
        "city": str | None,
        "state": str | None,
        "country": str | None,
        "provider": str
      }
    - MUST NEVER raise upstream exceptions.
    - MUST return empty fields on failure.
    - Implementations should enforce a network timeout <= 3 seconds.
    """

    name = "base"

    @abstractmethod
    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        raise NotImplementedError

    def lookup_address(self, latitude: float, longitude: float) -> Optional[str]:
        """Single address line for an issue, or None when nothing was found."""
        return format_address(self.reverse_geocode(latitude, longitude))


class NoOpProvider(GeocodingProvider):
    """Used when geocoding is disabled; issues keep a null address."""

    name = "noop"

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        return empty_result(self.name)


def empty_result(provider: str) -> Dict[str, Optional[str]]:
    return {
        "formatted_address": None,
        "locality": None,
        "city": None,
        "state": None,
        "country": None,
        "provider": provider,
    }


def format_address(result: Dict[str, Optional[str]]) -> Optional[str]:
    if result.get("formatted_address"):
        return result["formatted_address"]
    parts = [result.get(key) for key in ("locality", "city", "state", "country")]
    parts = [part for part in parts if part]
    return ", ".join(parts) or None
