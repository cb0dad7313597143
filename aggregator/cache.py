"""
Aggregation Cache
=================

Memoizes ComparisonResults per quantized (origin, destination, time bucket)
key. Entries expire lazily on read and are evicted least-recently-used once
the capacity is exceeded. Concurrent misses for the same key share a single
computation through a per-key lease.

Time buckets are aligned to the epoch, not to the first query: a result
stored late in a bucket is no longer found once the next bucket starts, even
if its TTL has not run out. An entry is therefore served for at most
min(ttl, time left in its bucket).
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from aggregator.config import AggregatorConfig
from aggregator.models import ComparisonResult, Location

logger = logging.getLogger(__name__)

CacheKey = Tuple[float, float, float, float, int]


@dataclass
class CacheEntry:
    key: CacheKey
    value: ComparisonResult
    expires_at: float


@dataclass
class Lease:
    """In-flight computation for one key; expires on the monotonic clock"""
    future: asyncio.Future
    expires_at: float


def _consume_exception(future: asyncio.Future) -> None:
    # Marks the exception as retrieved when no caller was waiting on it.
    if not future.cancelled():
        future.exception()


class AggregationCache:
    """TTL + LRU cache of comparison results with request collapsing"""

    def __init__(
        self,
        ttl: float = 120.0,
        capacity: int = 1024,
        precision: int = 3,
        time_bucket: float = 120.0,
        lease_seconds: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        if ttl <= 0 or time_bucket <= 0 or lease_seconds <= 0:
            raise ValueError("ttl, time_bucket and lease_seconds must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.ttl = ttl
        self.capacity = capacity
        self.precision = precision
        self.time_bucket = time_bucket
        self.lease_seconds = lease_seconds
        self.clock = clock

        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._leases: Dict[CacheKey, Lease] = {}

        self.hits = 0
        self.misses = 0
        self.collapsed = 0
        self.evictions = 0
        self.computations = 0

    @classmethod
    def from_config(cls, config: AggregatorConfig, clock: Callable[[], float] = time.time) -> "AggregationCache":
        return cls(
            ttl=config.cache_ttl,
            capacity=config.cache_capacity,
            precision=config.cache_coordinate_precision,
            time_bucket=config.cache_time_bucket,
            lease_seconds=config.cache_lease_seconds,
            clock=clock,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def make_key(self, origin: Location, destination: Location, now: Optional[float] = None) -> CacheKey:
        """Round coordinates to the grid and the current time to its bucket"""
        now = self.clock() if now is None else now
        p = self.precision
        return (
            round(origin.lat, p),
            round(origin.lon, p),
            round(destination.lat, p),
            round(destination.lon, p),
            int(now // self.time_bucket),
        )

    def get(self, origin: Location, destination: Location) -> Optional[ComparisonResult]:
        """Return the cached result, or None on a miss"""
        now = self.clock()
        return self._lookup(self.make_key(origin, destination, now), now)

    def put(
        self,
        origin: Location,
        destination: Location,
        result: ComparisonResult,
        ttl: Optional[float] = None,
    ) -> None:
        now = self.clock()
        self._store(self.make_key(origin, destination, now), result, ttl, now)

    async def get_or_compute(
        self,
        origin: Location,
        destination: Location,
        compute: Callable[[], Awaitable[ComparisonResult]],
    ) -> ComparisonResult:
        """
        Return a cached result or compute one, collapsing concurrent misses.

        Callers arriving while another computation for the same key is in
        flight wait for its result. If that computation outlives its lease,
        the first waiter to notice takes the lease over; the others wait on
        the new lease.
        """
        key = self.make_key(origin, destination)

        while True:
            cached = self._lookup(key, self.clock())
            if cached is not None:
                return cached

            lease = self._leases.get(key)
            if lease is None or lease.expires_at <= time.monotonic():
                break

            self.collapsed += 1
            try:
                return await asyncio.wait_for(
                    asyncio.shield(lease.future),
                    timeout=max(0.0, lease.expires_at - time.monotonic()),
                )
            except asyncio.TimeoutError:
                # Re-check: another waiter may already hold a fresh lease.
                if self._leases.get(key) is lease:
                    logger.warning(f"Lease for {key} expired before its computation finished, taking over")
                continue
            except asyncio.CancelledError:
                # The lease owner was cancelled; try again unless we were too.
                if lease.future.cancelled():
                    continue
                raise

        return await self._compute_with_lease(key, compute)

    async def _compute_with_lease(
        self,
        key: CacheKey,
        compute: Callable[[], Awaitable[ComparisonResult]],
    ) -> ComparisonResult:
        loop = asyncio.get_running_loop()
        lease = Lease(future=loop.create_future(), expires_at=time.monotonic() + self.lease_seconds)
        lease.future.add_done_callback(_consume_exception)
        self._leases[key] = lease
        self.computations += 1

        try:
            result = await compute()
        except asyncio.CancelledError:
            lease.future.cancel()
            raise
        except Exception as e:
            lease.future.set_exception(e)
            raise
        else:
            if result.total_failure:
                logger.info(f"Not caching {key}: every provider failed")
            else:
                self._store(key, result, None, self.clock())
            lease.future.set_result(result)
            return result
        finally:
            if self._leases.get(key) is lease:
                del self._leases[key]

    def stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "capacity": self.capacity,
            "in_flight": len(self._leases),
            "hits": self.hits,
            "misses": self.misses,
            "collapsed": self.collapsed,
            "evictions": self.evictions,
            "computations": self.computations,
        }

    def clear(self) -> None:
        self._entries.clear()

    def _lookup(self, key: CacheKey, now: float) -> Optional[ComparisonResult]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return entry.value

    def _store(self, key: CacheKey, result: ComparisonResult, ttl: Optional[float], now: float) -> None:
        ttl = self.ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._entries[key] = CacheEntry(key=key, value=result, expires_at=now + ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug(f"Evicted {evicted}")
