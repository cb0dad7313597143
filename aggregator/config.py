"""
Configuration
=============

All runtime settings come from the environment and are collected into one
AggregatorConfig, which is passed explicitly to the coordinator, the cache
and the adapters.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

KNOWN_PROVIDERS = ("uber", "namma_yatri", "ola", "rapido")

DEFAULT_USER_AGENT = "RideAggregator/1.0"


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def parse_provider_list(value: str) -> Tuple[str, ...]:
    names = []
    for raw in value.split(","):
        name = raw.strip().lower().replace("-", "_")
        if name and name not in names:
            names.append(name)
    return tuple(names)


def default_enabled_providers() -> Tuple[str, ...]:
    providers = []
    if os.getenv("UBER_API_KEY"):
        providers.append("uber")
    if env_bool("NAMMA_YATRI_ENABLED"):
        providers.append("namma_yatri")
    providers.extend(["ola", "rapido"])
    return tuple(providers)


@dataclass(frozen=True)
class AggregatorConfig:
    enabled_providers: Tuple[str, ...] = ("ola", "rapido")
    per_provider_timeout: float = 4.0
    overall_timeout: float = 6.0
    provider_retries: int = 0
    retry_backoff: float = 0.25
    cache_ttl: float = 120.0
    cache_capacity: int = 1024
    cache_coordinate_precision: int = 3
    cache_time_bucket: float = 120.0
    cache_lease_seconds: float = 10.0
    uber_api_key: Optional[str] = field(default=None, repr=False)
    uber_api_url: str = "https://api.uber.com"
    namma_yatri_api_url: str = "https://api.nammayatri.in"
    geocoder_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"

    def __post_init__(self):
        unknown = [name for name in self.enabled_providers if name not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(f"Unknown providers: {', '.join(unknown)}")
        for name in ("per_provider_timeout", "overall_timeout", "cache_ttl",
                     "cache_time_bucket", "cache_lease_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.cache_capacity < 1:
            raise ValueError("cache_capacity must be at least 1")
        if self.provider_retries < 0:
            raise ValueError("provider_retries must not be negative")
        if self.cache_coordinate_precision < 0:
            raise ValueError("cache_coordinate_precision must not be negative")

    @classmethod
    def from_env(cls) -> "AggregatorConfig":
        """Build configuration from environment variables"""
        providers = os.getenv("AGGREGATOR_ENABLED_PROVIDERS")
        return cls(
            enabled_providers=(
                parse_provider_list(providers) if providers is not None
                else default_enabled_providers()
            ),
            per_provider_timeout=env_float("AGGREGATOR_PER_PROVIDER_TIMEOUT", 4.0),
            overall_timeout=env_float("AGGREGATOR_OVERALL_TIMEOUT", 6.0),
            provider_retries=env_int("AGGREGATOR_PROVIDER_RETRIES", 0),
            retry_backoff=env_float("AGGREGATOR_RETRY_BACKOFF", 0.25),
            cache_ttl=env_float("AGGREGATOR_CACHE_TTL", 120.0),
            cache_capacity=env_int("AGGREGATOR_CACHE_CAPACITY", 1024),
            cache_coordinate_precision=env_int("AGGREGATOR_CACHE_PRECISION", 3),
            cache_time_bucket=env_float("AGGREGATOR_CACHE_TIME_BUCKET", 120.0),
            cache_lease_seconds=env_float("AGGREGATOR_CACHE_LEASE", 10.0),
            uber_api_key=os.getenv("UBER_API_KEY") or None,
            uber_api_url=os.getenv("UBER_API_URL", "https://api.uber.com"),
            namma_yatri_api_url=os.getenv("NAMMA_YATRI_API_URL", "https://api.nammayatri.in"),
            geocoder_url=os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org"),
            user_agent=(os.getenv("AGGREGATOR_USER_AGENT") or "").strip() or DEFAULT_USER_AGENT,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
