"""
Integration Tests Package
==========================

Integration tests require a running aggregator:
- Aggregator API on localhost:8000

To run integration tests:
    pytest tests/integration/ -v -m integration
"""
