"""
Provider Adapter Base
=====================

Every ride service is wrapped in a ProviderAdapter exposing one capability,
fetch_quotes(origin, destination, deadline). HTTP-backed adapters share the
request/timeout/error-translation flow in HttpProviderAdapter and only
supply request construction and response parsing.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from aggregator.errors import (
    ProviderError,
    ProviderProtocolError,
    ProviderTimeout,
    ProviderUnavailable,
)
from aggregator.models import Location, Quote

logger = logging.getLogger(__name__)


@dataclass
class ProviderRequest:
    """A single outbound call described by an adapter"""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, Any]] = None
    json_body: Optional[Dict[str, Any]] = None


def to_minor_units(amount: Any) -> int:
    """Convert a major-unit fare (e.g. 180.5 rupees) to integer minor units"""
    if isinstance(amount, bool) or amount is None:
        raise TypeError(f"fare must be numeric, got {amount!r}")
    value = float(amount)
    if value < 0:
        raise ValueError(f"fare must not be negative, got {amount!r}")
    return int(round(value * 100))


class ProviderAdapter(ABC):
    """Common contract for all ride services"""

    name = "base"
    display_name = "Base"

    @abstractmethod
    async def fetch_quotes(self, origin: Location, destination: Location, deadline: float) -> List[Quote]:
        """
        Fetch quotes for a route.

        Args:
            origin: Pickup coordinates
            destination: Drop-off coordinates
            deadline: Absolute time on the time.monotonic() clock

        Raises:
            ProviderUnavailable, ProviderTimeout or ProviderProtocolError
        """
        raise NotImplementedError

    def remaining(self, deadline: float) -> float:
        """Seconds left before deadline; raises ProviderTimeout once it has passed"""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProviderTimeout(self.display_name, "deadline passed before request was sent")
        return remaining


class HttpProviderAdapter(ProviderAdapter):
    """Adapter that performs exactly one HTTP call per fetch_quotes"""

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    @abstractmethod
    def build_request(self, origin: Location, destination: Location) -> ProviderRequest:
        raise NotImplementedError

    @abstractmethod
    def parse_quotes(self, payload: Any, origin: Location, destination: Location) -> List[Quote]:
        raise NotImplementedError

    async def fetch_quotes(self, origin: Location, destination: Location, deadline: float) -> List[Quote]:
        remaining = self.remaining(deadline)
        request = self.build_request(origin, destination)
        payload = await self._request_json(request, remaining)
        try:
            return self.parse_quotes(payload, origin, destination)
        except ProviderError:
            raise
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderProtocolError(self.display_name, f"unexpected response shape: {e}")

    async def _request_json(self, request: ProviderRequest, timeout: float) -> Any:
        started = time.monotonic()

        def latency() -> float:
            return round((time.monotonic() - started) * 1000, 2)

        try:
            response = await asyncio.wait_for(
                self.http_client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    params=request.params,
                    json=request.json_body,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
            response.raise_for_status()
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise ProviderTimeout(self.display_name, f"timed out after {timeout:.2f}s", latency_ms=latency()) from e
        except httpx.HTTPStatusError as e:
            raise self._classify_status(e.response.status_code, latency()) from e
        except httpx.RequestError as e:
            raise ProviderUnavailable(
                self.display_name, f"request error: {type(e).__name__}", latency_ms=latency()
            ) from e

        logger.debug(f"{self.display_name} responded {response.status_code} in {latency()}ms")
        try:
            return response.json()
        except ValueError as e:
            raise ProviderProtocolError(self.display_name, "response is not valid JSON", latency_ms=latency()) from e

    def _classify_status(self, status_code: int, latency_ms: float) -> ProviderError:
        message = f"HTTP {status_code}"
        if status_code in {401, 403, 429} or status_code >= 500:
            return ProviderUnavailable(self.display_name, message, latency_ms=latency_ms)
        return ProviderProtocolError(self.display_name, message, latency_ms=latency_ms)
