"""
Geocoding
=========

Address-to-coordinates lookup through an OpenStreetMap Nominatim endpoint.
"""

import logging

import httpx

from aggregator.errors import LocationNotFound
from aggregator.models import Location

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    """Resolves free-text addresses to a Location"""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = "https://nominatim.openstreetmap.org",
                 user_agent: str = "RideAggregator/1.0", timeout: float = 5.0):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout

    async def resolve(self, address: str) -> Location:
        """
        Resolve an address.

        Raises:
            LocationNotFound: no match for the address
            httpx.HTTPError: the geocoder could not be reached
            ValueError, KeyError: the geocoder reply was not usable
        """
        query = (address or "").strip()
        if not query:
            raise LocationNotFound(address)

        response = await self.http_client.get(
            f"{self.base_url}/search",
            params={"q": query, "format": "json", "limit": 1},
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        response.raise_for_status()

        results = response.json()
        if not results:
            logger.info(f"No geocoding match for '{query}'")
            raise LocationNotFound(query)

        match = results[0]
        return Location(
            lat=float(match["lat"]),
            lon=float(match["lon"]),
            address=(match.get("display_name") or query)[:500],
        )
