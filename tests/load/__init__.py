"""
Load Testing Package
====================

Load tests for the comparison endpoint and its cache.

Install Locust:
    pip install -e ".[load]"

Run load tests:
    locust -f tests/load/locustfile.py --host http://localhost:8000
"""
