"""
Pydantic Models for the Ride Fare Aggregator
============================================

Domain values (Location, Quote, ComparisonResult) and the request/response
models of the HTTP API. Domain values are frozen once created.
"""

import uuid
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
from pydantic import BaseModel, Field, validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# LOCATION MODELS
# ============================================

class Location(BaseModel):
    """GPS coordinates with an optional display address"""
    lat: float = Field(..., ge=-90, le=90, description="Latitude (-90 to 90)")
    lon: float = Field(..., ge=-180, le=180, description="Longitude (-180 to 180)")
    address: Optional[str] = Field(None, max_length=500, description="Display address")

    class Config:
        frozen = True
        allow_inf_nan = False
        json_schema_extra = {
            "example": {
                "lat": 12.9716,
                "lon": 77.5946,
                "address": "MG Road, Bengaluru"
            }
        }


# ============================================
# QUOTE MODELS
# ============================================

class Quote(BaseModel):
    """A single provider's price/ETA estimate for one product on one route"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Opaque quote ID")
    provider_name: str = Field(..., min_length=1, description="Ride service, e.g. Uber")
    product_type: str = Field(..., min_length=1, description="Product, e.g. Auto or Mini")
    price_amount: int = Field(..., ge=0, description="Price in minor currency units")
    eta_seconds: int = Field(..., ge=0, description="Estimated time in seconds")
    booking_reference: str = Field("", description="Deep link or booking token")
    currency: str = Field("INR", min_length=3, max_length=3)
    captured_at: datetime = Field(default_factory=utc_now)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "0f6f7a4e-3c52-4b0e-8a55-1b7f7c2d9a10",
                "provider_name": "Rapido",
                "product_type": "Bike",
                "price_amount": 4500,
                "eta_seconds": 240,
                "booking_reference": "https://www.rapido.bike/",
                "currency": "INR",
                "captured_at": "2025-01-15T10:30:00Z"
            }
        }


class ComparisonResult(BaseModel):
    """Merged, ranked outcome of one comparison query"""
    origin: Location
    destination: Location
    quotes: Tuple[Quote, ...] = ()
    cheapest_quote_id: Optional[str] = None
    fastest_quote_id: Optional[str] = None
    partial_failures: Tuple[str, ...] = ()
    failure_reasons: Mapping[str, str] = Field(default_factory=lambda: MappingProxyType({}))
    generated_at: datetime = Field(default_factory=utc_now)

    class Config:
        frozen = True

    @validator("failure_reasons")
    def failure_reasons_read_only(cls, v):
        """Failure reasons are read-only once the result is built"""
        return MappingProxyType(dict(v))

    @property
    def total_failure(self) -> bool:
        """True when no provider contributed a quote and at least one failed"""
        return not self.quotes and bool(self.partial_failures)

    def quote_by_id(self, quote_id: Optional[str]) -> Optional[Quote]:
        for quote in self.quotes:
            if quote.id == quote_id:
                return quote
        return None


# ============================================
# API MODELS
# ============================================

class CompareRequest(BaseModel):
    """Request body for POST /rides/compare"""
    origin: Location
    destination: Location

    class Config:
        json_schema_extra = {
            "example": {
                "origin": {"lat": 12.9716, "lon": 77.5946},
                "destination": {"lat": 12.9352, "lon": 77.6245}
            }
        }


class RideOption(BaseModel):
    """A quote as presented to API clients"""
    quoteId: str
    provider: str
    productType: str
    price: int
    currency: str
    etaSeconds: int
    bookingUrl: str
    capturedAt: datetime
    cheapest: bool = False
    fastest: bool = False


class CompareResponse(BaseModel):
    """Response body for POST /rides/compare"""
    rides: List[RideOption]
    partialFailures: List[str]
    failureReasons: Dict[str, str] = Field(default_factory=dict)
    cheapestQuoteId: Optional[str] = None
    fastestQuoteId: Optional[str] = None
    generatedAt: datetime

    @classmethod
    def from_result(cls, result: ComparisonResult) -> "CompareResponse":
        rides = [
            RideOption(
                quoteId=quote.id,
                provider=quote.provider_name,
                productType=quote.product_type,
                price=quote.price_amount,
                currency=quote.currency,
                etaSeconds=quote.eta_seconds,
                bookingUrl=quote.booking_reference,
                capturedAt=quote.captured_at,
                cheapest=quote.id == result.cheapest_quote_id,
                fastest=quote.id == result.fastest_quote_id,
            )
            for quote in result.quotes
        ]
        return cls(
            rides=rides,
            partialFailures=list(result.partial_failures),
            failureReasons=dict(result.failure_reasons),
            cheapestQuoteId=result.cheapest_quote_id,
            fastestQuoteId=result.fastest_quote_id,
            generatedAt=result.generated_at,
        )


class GeocodeRequest(BaseModel):
    """Request body for POST /geocode"""
    address: str = Field(..., min_length=1, max_length=500)

    class Config:
        json_schema_extra = {
            "example": {"address": "Koramangala, Bengaluru"}
        }


class ProvidersResponse(BaseModel):
    """Enabled providers and the active timeout/cache settings"""
    providers: List[str]
    per_provider_timeout: float
    overall_timeout: float
    cache_ttl: float
    cache_capacity: int


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = "ok"
    timestamp: datetime = Field(default_factory=utc_now)


class CacheStats(BaseModel):
    """Aggregation cache counters"""
    entries: int
    capacity: int
    in_flight: int
    hits: int
    misses: int
    collapsed: int
    evictions: int
    computations: int
