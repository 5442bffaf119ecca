# geocoder.py
# Address -> coordinate lookups against Nominatim.
#
# Usage:
#   geocoder = Geocoder(config)
#   place = geocoder.geocode("123 Main St, Chicago, IL")
#   suggestions = geocoder.search("456 Elm")

import logging
from typing import Dict, List, Optional

import osmnx as ox
import requests

from ..navigation.models import Coord, Place
from ..navigation.nav_config import NavConfig

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3


class GeocodingError(Exception):
    """Address could not be turned into a coordinate."""


class Geocoder:
    """
    Thin wrapper over osmnx's Nominatim geocoder.

    Args:
        config: NavConfig with the Nominatim URL, user agent and timeout.
    """

    def __init__(self, config: Optional[NavConfig] = None, session: Optional[requests.Session] = None) -> None:
        self.config = config or NavConfig()
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.config.user_agent)

        ox.settings.nominatim_url = self.config.nominatim_url.rstrip("/") + "/"
        ox.settings.http_user_agent = self.config.user_agent
        ox.settings.requests_timeout = self.config.timeout

    def geocode(self, address: str) -> Place:
        """
        Resolve one address.

        Raises:
            GeocodingError: empty address, no match or Nominatim failure.
        """
        address = (address or "").strip()
        if not address:
            raise GeocodingError("Address is empty.")
        try:
            lat, lon = ox.geocode(address)
        except (ValueError, requests.RequestException) as e:
            logger.warning(f"[Geocoder] '{address}' not found: {e}")
            raise GeocodingError(f"Address not found: {address}") from e

        logger.info(f"[Geocoder] '{address}' -> ({lat:.5f}, {lon:.5f})")
        return Place(address=address, coord=Coord(float(lat), float(lon)), display_name=address)

    def search(self, query: str, limit: int = 5) -> List[Dict]:
        """
        Address suggestions for autocomplete.

        Returns:
            Raw Nominatim results (display_name, lat, lon, address...).
            Queries shorter than three characters return [].
        """
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        url = self.config.nominatim_url.rstrip("/") + "/search"
        try:
            response = self.session.get(
                url,
                params={"q": query, "format": "json", "addressdetails": 1, "limit": limit},
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise GeocodingError(f"Address search failed: {e}") from e
