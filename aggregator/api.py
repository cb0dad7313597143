"""
Ride Fare Aggregator API
========================

Compares price/ETA quotes from several ride-hailing providers.
Fans out to every enabled provider and returns a merged, ranked result.

Run: uvicorn aggregator.api:app --host 0.0.0.0 --port 8000
"""

import logging
from typing import Optional
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

import httpx

from aggregator import __version__
from aggregator.cache import AggregationCache
from aggregator.config import AggregatorConfig
from aggregator.errors import InvalidQueryError, LocationNotFound
from aggregator.fanout import FanOutCoordinator
from aggregator.geocoding import NominatimGeocoder
from aggregator.models import (
    CacheStats, CompareRequest, CompareResponse,
    GeocodeRequest, HealthResponse, Location, ProvidersResponse
)
from aggregator.providers import build_adapters
from aggregator.service import RideComparisonService

config = AggregatorConfig.from_env()

# Configure logging
logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Set up in lifespan
http_client: Optional[httpx.AsyncClient] = None
comparison_service: Optional[RideComparisonService] = None
geocoder: Optional[NominatimGeocoder] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup/shutdown"""
    global http_client, comparison_service, geocoder

    # Startup
    logger.info("Starting Ride Fare Aggregator...")
    http_client = httpx.AsyncClient(
        timeout=config.per_provider_timeout,
        headers={"User-Agent": config.user_agent, "Accept": "application/json"},
        follow_redirects=True,
    )
    coordinator = FanOutCoordinator(build_adapters(config, http_client), config)
    comparison_service = RideComparisonService(coordinator, AggregationCache.from_config(config), config)
    geocoder = NominatimGeocoder(http_client, config.geocoder_url, config.user_agent)

    yield

    # Shutdown
    logger.info("Shutting down Ride Fare Aggregator...")
    await http_client.aclose()
    http_client = None
    comparison_service = None
    geocoder = None


app = FastAPI(
    title="Ride Fare Aggregator",
    version=__version__,
    description="Compares ride quotes across providers",
    lifespan=lifespan
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400)"""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def _require_service() -> RideComparisonService:
    if comparison_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Comparison service is not running"
        )
    return comparison_service


# ============================================
# COMPARISON ENDPOINT
# ============================================

@app.post("/rides/compare", response_model=CompareResponse)
async def compare_rides(request: CompareRequest):
    """
    Compare quotes from all enabled providers.

    Providers that fail or time out are listed in partialFailures; the
    request still succeeds with whatever quotes were collected.
    """
    service = _require_service()

    try:
        result = await service.compare(request.origin, request.destination)
    except InvalidQueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Comparison failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Comparison failed"
        )

    if result.partial_failures:
        logger.info(f"Comparison degraded, failed providers: {', '.join(result.partial_failures)}")

    return CompareResponse.from_result(result)


# ============================================
# GEOCODING ENDPOINT
# ============================================

@app.post("/geocode", response_model=Location)
async def geocode(request: GeocodeRequest):
    """Convert an address to coordinates"""
    if geocoder is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Geocoder is not running"
        )

    try:
        return await geocoder.resolve(request.address)
    except LocationNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    except httpx.HTTPError as e:
        logger.error(f"Geocoding failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Geocoding failed")
    except (ValueError, KeyError, IndexError, TypeError) as e:
        # Undecodable body, missing fields or out-of-range coordinates
        logger.error(f"Geocoder returned an unusable response: {type(e).__name__}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Geocoding failed")


# ============================================
# STATUS ENDPOINTS
# ============================================

@app.get("/providers", response_model=ProvidersResponse)
async def list_providers():
    """Enabled providers and timeout/cache settings"""
    service = _require_service()
    return ProvidersResponse(
        providers=service.coordinator.provider_names,
        per_provider_timeout=config.per_provider_timeout,
        overall_timeout=config.overall_timeout,
        cache_ttl=config.cache_ttl,
        cache_capacity=config.cache_capacity,
    )


@app.get("/cache/stats", response_model=CacheStats)
async def cache_statistics():
    """Aggregation cache counters"""
    service = _require_service()
    return CacheStats(**service.cache.stats())


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return HealthResponse()


@app.get("/")
async def root():
    """Root endpoint with API info"""
    return {
        "service": "Ride Fare Aggregator",
        "version": __version__,
        "endpoints": {
            "compare": "POST /rides/compare - Compare ride quotes between two points",
            "geocode": "POST /geocode - Resolve an address to coordinates",
            "providers": "GET /providers - Enabled providers and settings",
            "cache": "GET /cache/stats - Cache counters",
            "health": "GET /health - Health check"
        },
        "providers": list(config.enabled_providers)
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
