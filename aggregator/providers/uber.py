"""Uber price estimates (requires a partner API key)."""

from typing import Any, List
from urllib.parse import urlencode

import httpx

from aggregator.models import Location, Quote
from aggregator.providers.base import HttpProviderAdapter, ProviderRequest, to_minor_units


def uber_deeplink(origin: Location, destination: Location) -> str:
    query = urlencode({
        "action": "setPickup",
        "pickup[latitude]": origin.lat,
        "pickup[longitude]": origin.lon,
        "dropoff[latitude]": destination.lat,
        "dropoff[longitude]": destination.lon,
    })
    return f"uber://?{query}"


class UberAdapter(HttpProviderAdapter):
    name = "uber"
    display_name = "Uber"

    def __init__(self, http_client: httpx.AsyncClient, api_key: str, base_url: str = "https://api.uber.com"):
        super().__init__(http_client)
        if not api_key:
            raise ValueError("Uber adapter requires an API key")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def build_request(self, origin: Location, destination: Location) -> ProviderRequest:
        return ProviderRequest(
            method="GET",
            url=f"{self.base_url}/v1.2/estimates/price",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept-Language": "en_IN",
            },
            params={
                "start_latitude": origin.lat,
                "start_longitude": origin.lon,
                "end_latitude": destination.lat,
                "end_longitude": destination.lon,
            },
        )

    def parse_quotes(self, payload: Any, origin: Location, destination: Location) -> List[Quote]:
        prices = payload["prices"]
        if not isinstance(prices, list):
            raise TypeError("'prices' is not a list")

        link = uber_deeplink(origin, destination)
        quotes = []
        for entry in prices:
            # Metered products come back without a fare estimate
            if entry.get("low_estimate") is None:
                continue
            quotes.append(Quote(
                provider_name=self.display_name,
                product_type=entry["display_name"],
                price_amount=to_minor_units(entry["low_estimate"]),
                eta_seconds=int(entry["duration"]),
                booking_reference=link,
                currency=entry.get("currency_code") or "INR",
            ))
        return quotes
