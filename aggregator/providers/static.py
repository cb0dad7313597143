"""
Static Quote Adapters
=====================

Fixed product catalogues for services that have no public estimate API
(Ola, Rapido). The same class doubles as a test adapter: it can inject a
delay or a failure and counts its invocations.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from aggregator.errors import ProviderError, ProviderTimeout
from aggregator.models import Location, Quote
from aggregator.providers.base import ProviderAdapter


@dataclass(frozen=True)
class StaticProduct:
    product_type: str
    price_amount: int
    eta_seconds: int
    # Fixed booking URL; overrides the adapter link builder
    link: Optional[str] = None


def ola_link(origin: Location, destination: Location) -> str:
    return "https://www.olacabs.com/"


def rapido_link(origin: Location, destination: Location) -> str:
    return (
        f"https://www.rapido.bike/ride?from={origin.lat},{origin.lon}"
        f"&to={destination.lat},{destination.lon}"
    )


OLA_PRODUCTS = (
    StaticProduct("Mini", 18000, 180),
    StaticProduct("Auto", 9000, 240),
)

RAPIDO_PRODUCTS = (
    StaticProduct("Bike", 4500, 240),
    StaticProduct("Auto", 7500, 300, link="https://www.rapido.bike/"),
)


class StaticQuoteAdapter(ProviderAdapter):
    """Returns a fixed catalogue of quotes for any route"""

    def __init__(
        self,
        name: str,
        display_name: str,
        products: Sequence[StaticProduct],
        link_builder: Optional[Callable[[Location, Location], str]] = None,
        delay: float = 0.0,
        failure: Optional[ProviderError] = None,
        currency: str = "INR",
    ):
        self.name = name
        self.display_name = display_name
        self.products = tuple(products)
        self.link_builder = link_builder
        self.delay = delay
        self.failure = failure
        self.currency = currency
        self.calls = 0

    async def fetch_quotes(self, origin: Location, destination: Location, deadline: float) -> List[Quote]:
        self.calls += 1
        remaining = self.remaining(deadline)
        if self.delay:
            if self.delay >= remaining:
                await asyncio.sleep(remaining)
                raise ProviderTimeout(self.display_name, f"timed out after {remaining:.2f}s")
            await asyncio.sleep(self.delay)
        if self.failure is not None:
            raise self.failure

        link = self.link_builder(origin, destination) if self.link_builder else ""
        return [
            Quote(
                provider_name=self.display_name,
                product_type=product.product_type,
                price_amount=product.price_amount,
                eta_seconds=product.eta_seconds,
                booking_reference=product.link or link,
                currency=self.currency,
            )
            for product in self.products
        ]


def ola_adapter(**kwargs) -> StaticQuoteAdapter:
    return StaticQuoteAdapter("ola", "Ola", OLA_PRODUCTS, link_builder=ola_link, **kwargs)


def rapido_adapter(**kwargs) -> StaticQuoteAdapter:
    return StaticQuoteAdapter("rapido", "Rapido", RAPIDO_PRODUCTS, link_builder=rapido_link, **kwargs)
