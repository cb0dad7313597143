"""Namma Yatri fare estimate (open network, auto-rickshaws)."""

from typing import Any, List

import httpx

from aggregator.models import Location, Quote
from aggregator.providers.base import HttpProviderAdapter, ProviderRequest, to_minor_units


def namma_yatri_deeplink(origin: Location, destination: Location) -> str:
    return (
        f"nammayatri://ride?from={origin.lat},{origin.lon}"
        f"&to={destination.lat},{destination.lon}"
    )


class NammaYatriAdapter(HttpProviderAdapter):
    name = "namma_yatri"
    display_name = "Namma Yatri"
    product_type = "Auto"

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = "https://api.nammayatri.in"):
        super().__init__(http_client)
        self.base_url = base_url.rstrip("/")

    def build_request(self, origin: Location, destination: Location) -> ProviderRequest:
        return ProviderRequest(
            method="POST",
            url=f"{self.base_url}/v1/estimate",
            json_body={
                "fromLocation": {"lat": origin.lat, "lon": origin.lon},
                "toLocation": {"lat": destination.lat, "lon": destination.lon},
            },
        )

    def parse_quotes(self, payload: Any, origin: Location, destination: Location) -> List[Quote]:
        # estimatedTime is reported in minutes
        eta_minutes = float(payload["estimatedTime"])
        if eta_minutes < 0:
            raise ValueError("estimatedTime must not be negative")
        return [Quote(
            provider_name=self.display_name,
            product_type=self.product_type,
            price_amount=to_minor_units(payload["estimatedFare"]),
            eta_seconds=int(round(eta_minutes * 60)),
            booking_reference=namma_yatri_deeplink(origin, destination),
            currency=payload.get("currency") or "INR",
        )]
