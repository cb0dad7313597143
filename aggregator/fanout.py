"""
Fan-out Coordinator
===================

Scatter-gather over all registered provider adapters. Every adapter runs as
its own task against a shared absolute deadline; one slow or failing
provider never blocks or cancels the others.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from pydantic import ValidationError

from aggregator.config import AggregatorConfig
from aggregator.errors import (
    InvalidQueryError,
    ProviderError,
    ProviderProtocolError,
    ProviderTimeout,
    ProviderUnavailable,
)
from aggregator.models import ComparisonResult, Location, Quote
from aggregator.providers.base import ProviderAdapter
from aggregator.ranking import rank

logger = logging.getLogger(__name__)


@dataclass
class ProviderOutcome:
    """Settled result of one adapter call"""
    adapter: ProviderAdapter
    quotes: List[Quote] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def failure_kind(self) -> Optional[str]:
        if self.error is None:
            return None
        if isinstance(self.error, ProviderError):
            return self.error.error_type
        return "error"


def validate_location(value: Any, label: str) -> Location:
    """Coerce and range-check a coordinate pair"""
    if isinstance(value, dict):
        try:
            value = Location.model_validate(value)
        except ValidationError as e:
            raise InvalidQueryError(f"{label} is not a valid location: {e.error_count()} error(s)")
    if not isinstance(value, Location):
        raise InvalidQueryError(f"{label} must be a Location, got {type(value).__name__}")

    for attr, limit in (("lat", 90.0), ("lon", 180.0)):
        coord = getattr(value, attr, None)
        if isinstance(coord, bool) or not isinstance(coord, (int, float)):
            raise InvalidQueryError(f"{label}.{attr} is missing or not a number")
        if not math.isfinite(coord) or abs(coord) > limit:
            raise InvalidQueryError(f"{label}.{attr} out of range: {coord}")
    return value


def validate_timeout(value: Optional[float], default: float, label: str) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidQueryError(f"{label} must be a number")
    if not math.isfinite(value) or value <= 0:
        raise InvalidQueryError(f"{label} must be positive, got {value}")
    return float(value)


class FanOutCoordinator:
    """Runs all adapters concurrently and ranks whatever they return in time"""

    def __init__(self, adapters: Sequence[ProviderAdapter], config: Optional[AggregatorConfig] = None):
        self.adapters = list(adapters)
        self.config = config or AggregatorConfig()

        names = [adapter.display_name for adapter in self.adapters]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate provider names: {', '.join(duplicates)}")

        # Abandoned tasks are referenced until they finish so they are not
        # garbage-collected mid-flight.
        self._abandoned: Set[asyncio.Task] = set()

    @property
    def provider_names(self) -> List[str]:
        return [adapter.display_name for adapter in self.adapters]

    async def compare(
        self,
        origin: Location,
        destination: Location,
        per_provider_timeout: Optional[float] = None,
        overall_timeout: Optional[float] = None,
    ) -> ComparisonResult:
        """
        Query every provider and build a ranked ComparisonResult.

        Only InvalidQueryError propagates; provider failures become entries
        in partial_failures.
        """
        origin = validate_location(origin, "origin")
        destination = validate_location(destination, "destination")
        per_provider = validate_timeout(
            per_provider_timeout, self.config.per_provider_timeout, "per_provider_timeout"
        )
        overall = validate_timeout(overall_timeout, self.config.overall_timeout, "overall_timeout")

        started = time.monotonic()
        overall_deadline = started + overall
        provider_deadline = min(started + per_provider, overall_deadline)

        tasks = {
            asyncio.create_task(
                self._call_adapter(adapter, origin, destination, provider_deadline),
                name=f"quotes-{adapter.name}",
            ): adapter
            for adapter in self.adapters
        }

        pending: Set[asyncio.Task] = set()
        if tasks:
            try:
                _, pending = await asyncio.wait(
                    tasks.keys(), timeout=max(0.0, overall_deadline - time.monotonic())
                )
            except asyncio.CancelledError:
                for task in tasks:
                    if not task.done():
                        self._abandon(task)
                raise

        quotes: List[Quote] = []
        failure_reasons: Dict[str, str] = {}
        for task, adapter in tasks.items():
            if task in pending:
                logger.warning(f"{adapter.display_name} still running at overall deadline, abandoning")
                failure_reasons[adapter.display_name] = "abandoned"
                self._abandon(task)
                continue
            if task.cancelled():
                failure_reasons[adapter.display_name] = "abandoned"
                continue

            outcome = task.result()
            if outcome.error is not None:
                failure_reasons[adapter.display_name] = outcome.failure_kind
            else:
                quotes.extend(outcome.quotes)

        ranked = rank(quotes)
        result = ComparisonResult(
            origin=origin,
            destination=destination,
            quotes=ranked.quotes,
            cheapest_quote_id=ranked.cheapest_id,
            fastest_quote_id=ranked.fastest_id,
            partial_failures=tuple(failure_reasons),
            failure_reasons=failure_reasons,
        )

        latency_ms = round((time.monotonic() - started) * 1000, 2)
        logger.info(
            f"Compared {len(result.quotes)} quotes from "
            f"{len(self.adapters) - len(failure_reasons)}/{len(self.adapters)} providers in {latency_ms}ms"
        )
        return result

    async def _call_adapter(
        self,
        adapter: ProviderAdapter,
        origin: Location,
        destination: Location,
        deadline: float,
    ) -> ProviderOutcome:
        """Call one adapter, retrying ProviderUnavailable while the deadline allows"""
        attempt = 0
        while True:
            attempt += 1
            remaining = deadline - time.monotonic()
            try:
                if remaining <= 0:
                    raise ProviderTimeout(adapter.display_name, "deadline exceeded")
                quotes = await asyncio.wait_for(
                    adapter.fetch_quotes(origin, destination, deadline), timeout=remaining
                )
                quotes = list(quotes)
                if not all(isinstance(quote, Quote) for quote in quotes):
                    raise ProviderProtocolError(adapter.display_name, "adapter returned non-Quote values")
                return ProviderOutcome(adapter, quotes=quotes)

            except asyncio.TimeoutError:
                error: BaseException = ProviderTimeout(adapter.display_name, "deadline exceeded")
            except ProviderUnavailable as e:
                delay = self.config.retry_backoff * (2 ** (attempt - 1))
                if attempt <= self.config.provider_retries and time.monotonic() + delay < deadline:
                    logger.info(f"{adapter.display_name} unavailable, retry {attempt} in {delay:.2f}s")
                    await asyncio.sleep(delay)
                    continue
                error = e
            except ProviderError as e:
                error = e
            except Exception as e:
                logger.exception(f"{adapter.display_name} adapter raised an unexpected error")
                error = e

            logger.warning(f"Provider {adapter.display_name} failed: {error}")
            return ProviderOutcome(adapter, error=error)

    def _abandon(self, task: asyncio.Task) -> None:
        # Cancellation is requested but never awaited.
        task.cancel()
        self._abandoned.add(task)
        task.add_done_callback(self._abandoned.discard)
