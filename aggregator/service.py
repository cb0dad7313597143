"""
Comparison Service
==================

The coordinator + cache composite the HTTP API talks to. Callers never
touch the cache directly.
"""

import logging
from typing import Optional

from aggregator.cache import AggregationCache
from aggregator.config import AggregatorConfig
from aggregator.fanout import FanOutCoordinator, validate_location
from aggregator.models import ComparisonResult, Location

logger = logging.getLogger(__name__)


class RideComparisonService:
    """Serves comparisons from cache, fanning out to providers on a miss"""

    def __init__(
        self,
        coordinator: FanOutCoordinator,
        cache: Optional[AggregationCache] = None,
        config: Optional[AggregatorConfig] = None,
    ):
        self.coordinator = coordinator
        self.config = config or coordinator.config
        self.cache = cache if cache is not None else AggregationCache.from_config(self.config)

    async def compare(self, origin: Location, destination: Location) -> ComparisonResult:
        origin = validate_location(origin, "origin")
        destination = validate_location(destination, "destination")

        async def compute() -> ComparisonResult:
            return await self.coordinator.compare(
                origin,
                destination,
                per_provider_timeout=self.config.per_provider_timeout,
                overall_timeout=self.config.overall_timeout,
            )

        return await self.cache.get_or_compute(origin, destination, compute)
