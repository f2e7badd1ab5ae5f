import logging
from typing import Any, Dict, Optional

import requests

from .base import GeocodingProvider, empty_result

logger = logging.getLogger(__name__)


class NominatimProvider(GeocodingProvider):
    """
    OpenStreetMap Nominatim reverse-geocoding provider.

    - No API key required.
    - Sends a User-Agent header as the Nominatim usage policy requires.
    - Never raises upstream exceptions; returns empty fields on failure.
    """

    BASE_URL = "https://nominatim.openstreetmap.org/reverse"
    name = "nominatim"

    def __init__(self, user_agent: str = "civictrack/0.1", timeout: float = 3.0):
        self.user_agent = user_agent
        self.timeout = timeout

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        try:
            resp = requests.get(
                self.BASE_URL,
                params={"lat": latitude, "lon": longitude, "format": "json", "addressdetails": 1},
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
            if resp.status_code != 200:
                logger.warning(f"Nominatim reverse-geocode failed with status {resp.status_code}")
                return empty_result(self.name)

            data: Dict[str, Any] = resp.json()
            address = data.get("address") or {}

            return {
                "formatted_address": data.get("display_name"),
                "locality": (
                    address.get("suburb")
                    or address.get("neighbourhood")
                    or address.get("quarter")
                    or address.get("village")
                ),
                "city": address.get("city") or address.get("town") or address.get("village"),
                "state": address.get("state"),
                "country": address.get("country"),
                "provider": self.name,
            }
        except (requests.RequestException, ValueError) as e:
            # Address is optional; issue creation continues without it
            logger.warning(f"Nominatim reverse-geocode error: {e}")
            return empty_result(self.name)
