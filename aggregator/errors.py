"""
Error Taxonomy
==============

Adapters translate every upstream failure into one of the ProviderError
subclasses below. Nothing outside this module sees a provider's own error
payload.
"""

from typing import Optional

MAX_DIAGNOSTIC_LENGTH = 200


class ProviderError(Exception):
    """Base class for failures of a single provider call"""

    error_type = "error"

    def __init__(self, provider: str, message: str, *, latency_ms: Optional[float] = None):
        self.provider = provider
        self.message = (message or "")[:MAX_DIAGNOSTIC_LENGTH]
        self.latency_ms = latency_ms
        super().__init__(f"{provider}: {self.message}")


class ProviderUnavailable(ProviderError):
    """Network, DNS, connection, auth or upstream 5xx failure"""

    error_type = "unavailable"


class ProviderTimeout(ProviderError):
    """The provider did not answer before its deadline"""

    error_type = "timeout"


class ProviderProtocolError(ProviderError):
    """The provider answered with a malformed or unexpected payload"""

    error_type = "protocol"


class InvalidQueryError(ValueError):
    """Malformed origin/destination or timeout arguments"""


class LocationNotFound(LookupError):
    """The geocoder has no match for an address"""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Location not found: {address}")
