"""
Ranking Engine
==============

Pure ordering of collected quotes. The result depends only on the set of
quotes, never on the order in which providers answered.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from aggregator.models import Quote


@dataclass(frozen=True)
class RankedQuotes:
    quotes: Tuple[Quote, ...]
    cheapest_id: Optional[str]
    fastest_id: Optional[str]


def price_key(quote: Quote) -> tuple:
    return (quote.price_amount, quote.provider_name, quote.product_type, quote.eta_seconds, quote.id)


def eta_key(quote: Quote) -> tuple:
    return (quote.eta_seconds, quote.provider_name, quote.product_type, quote.price_amount, quote.id)


def rank(quotes: Iterable[Quote]) -> RankedQuotes:
    """
    Order quotes by price and pick the cheapest and fastest.

    Ties on price break by provider name, then product type. Exactly one
    quote is marked cheapest and one fastest, even under full ties.
    """
    ordered = tuple(sorted(quotes, key=price_key))
    if not ordered:
        return RankedQuotes(quotes=(), cheapest_id=None, fastest_id=None)

    fastest = min(ordered, key=eta_key)
    return RankedQuotes(quotes=ordered, cheapest_id=ordered[0].id, fastest_id=fastest.id)
