"""
Provider Registry
=================

Builds the adapter set for the providers enabled in configuration.
"""

import logging
from typing import List

import httpx

from aggregator.config import AggregatorConfig
from aggregator.providers.base import HttpProviderAdapter, ProviderAdapter
from aggregator.providers.namma_yatri import NammaYatriAdapter
from aggregator.providers.static import StaticQuoteAdapter, ola_adapter, rapido_adapter
from aggregator.providers.uber import UberAdapter

logger = logging.getLogger(__name__)

__all__ = [
    "HttpProviderAdapter",
    "NammaYatriAdapter",
    "ProviderAdapter",
    "StaticQuoteAdapter",
    "UberAdapter",
    "build_adapters",
]


def build_adapters(config: AggregatorConfig, http_client: httpx.AsyncClient) -> List[ProviderAdapter]:
    """Instantiate one adapter per enabled provider, in configuration order"""
    adapters: List[ProviderAdapter] = []
    for name in config.enabled_providers:
        if name == "uber":
            if not config.uber_api_key:
                raise ValueError("Provider 'uber' is enabled but UBER_API_KEY is not set")
            adapters.append(UberAdapter(http_client, config.uber_api_key, config.uber_api_url))
        elif name == "namma_yatri":
            adapters.append(NammaYatriAdapter(http_client, config.namma_yatri_api_url))
        elif name == "ola":
            adapters.append(ola_adapter())
        elif name == "rapido":
            adapters.append(rapido_adapter())
        else:
            raise ValueError(f"Unknown provider: {name}")

    logger.info(f"Enabled providers: {', '.join(a.display_name for a in adapters) or 'none'}")
    return adapters
