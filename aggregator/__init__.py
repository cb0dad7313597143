"""
Ride Fare Aggregator
====================

This package contains the FastAPI service that compares ride-hailing quotes:
- api.py: HTTP API (port 8000)
- service.py: Coordinator + cache composite used by the API
- fanout.py: Concurrent fan-out to provider adapters
- ranking.py: Deterministic ordering of collected quotes
- cache.py: Quantized TTL/LRU cache with request collapsing
- providers/: One adapter per ride service
- models.py: Pydantic data models
- config.py: Environment configuration
"""

__version__ = "1.0.0"
