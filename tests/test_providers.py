"""
Unit Tests for Provider Adapters
================================

HTTP adapters run against httpx.MockTransport; no network access.
"""

import asyncio
import json
import time
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from aggregator.config import AggregatorConfig
from aggregator.errors import ProviderProtocolError, ProviderTimeout, ProviderUnavailable
from aggregator.models import Location
from aggregator.providers import build_adapters
from aggregator.providers.base import to_minor_units
from aggregator.providers.namma_yatri import NammaYatriAdapter
from aggregator.providers.static import StaticQuoteAdapter, ola_adapter, rapido_adapter
from aggregator.providers.uber import UberAdapter

ORIGIN = Location(lat=12.9716, lon=77.5946)
DESTINATION = Location(lat=12.9352, lon=77.6245)

UBER_PRICES = {
    "prices": [
        {
            "product_id": "a1",
            "display_name": "UberGo",
            "low_estimate": 195,
            "high_estimate": 240,
            "duration": 120,
            "currency_code": "INR",
        },
        {
            "product_id": "a2",
            "display_name": "Premier",
            "low_estimate": 310.5,
            "high_estimate": 380,
            "duration": 150,
            "currency_code": "INR",
        },
        {
            "product_id": "a3",
            "display_name": "Taxi",
            "low_estimate": None,
            "high_estimate": None,
            "duration": 150,
            "currency_code": None,
        },
    ]
}


def deadline_in(seconds=2.0):
    return time.monotonic() + seconds


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestUberAdapter:
    """Test Uber request construction and parsing"""

    async def test_parses_price_estimates(self):
        """Each priced product becomes a quote in minor units"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json=UBER_PRICES)

        async with client_for(handler) as client:
            adapter = UberAdapter(client, "secret-token", "https://uber.test")
            quotes = await adapter.fetch_quotes(ORIGIN, DESTINATION, deadline_in())

        request = seen["request"]
        assert request.method == "GET"
        assert request.url.path == "/v1.2/estimates/price"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.url.params["start_latitude"] == "12.9716"
        assert request.url.params["end_longitude"] == "77.6245"

        assert [(q.product_type, q.price_amount, q.eta_seconds) for q in quotes] == [
            ("UberGo", 19500, 120),
            ("Premier", 31050, 150),
        ]
        assert all(q.provider_name == "Uber" for q in quotes)
        assert quotes[0].booking_reference.startswith("uber://?action=setPickup")

    async def test_auth_failure_is_unavailable(self):
        """401 maps to ProviderUnavailable without leaking the body"""
        def handler(request):
            return httpx.Response(401, json={"message": "invalid token abc123"})

        async with client_for(handler) as client:
            adapter = UberAdapter(client, "bad")
            with pytest.raises(ProviderUnavailable) as exc_info:
                await adapter.fetch_quotes(ORIGIN, DESTINATION, deadline_in())

        assert "abc123" not in str(exc_info.value)
        assert exc_info.value.error_type == "unavailable"

    async def test_server_error_is_unavailable(self):
        async with client_for(lambda request: httpx.Response(503)) as client:
            with pytest.raises(ProviderUnavailable):
                await UberAdapter(client, "k").fetch_quotes(ORIGIN, DESTINATION, deadline_in())

    async def test_bad_request_is_protocol_error(self):
        async with client_for(lambda request: httpx.Response(422)) as client:
            with pytest.raises(ProviderProtocolError):
                await UberAdapter(client, "k").fetch_quotes(ORIGIN, DESTINATION, deadline_in())

    async def test_missing_prices_is_protocol_error(self):
        """A payload without 'prices' is malformed"""
        async with client_for(lambda request: httpx.Response(200, json={"error": "x"})) as client:
            with pytest.raises(ProviderProtocolError):
                await UberAdapter(client, "k").fetch_quotes(ORIGIN, DESTINATION, deadline_in())

    async def test_non_json_is_protocol_error(self):
        async with client_for(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(ProviderProtocolError):
                await UberAdapter(client, "k").fetch_quotes(ORIGIN, DESTINATION, deadline_in())

    async def test_connection_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            with pytest.raises(ProviderUnavailable):
                await UberAdapter(client, "k").fetch_quotes(ORIGIN, DESTINATION, deadline_in())

    async def test_httpx_timeout_is_provider_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        async with client_for(handler) as client:
            with pytest.raises(ProviderTimeout):
                await UberAdapter(client, "k").fetch_quotes(ORIGIN, DESTINATION, deadline_in())

    async def test_slow_upstream_hits_deadline(self):
        """The adapter gives up at its deadline even if the client does not"""
        mock_client = MagicMock()

        async def slow_request(*args, **kwargs):
            await asyncio.sleep(5)

        mock_client.request = slow_request
        adapter = UberAdapter(mock_client, "k")

        started = time.monotonic()
        with pytest.raises(ProviderTimeout):
            await adapter.fetch_quotes(ORIGIN, DESTINATION, deadline_in(0.1))
        assert time.monotonic() - started < 1.0

    async def test_passed_deadline_skips_request(self):
        """No request is sent once the deadline has passed"""
        mock_client = MagicMock()
        mock_client.request = AsyncMock()
        adapter = UberAdapter(mock_client, "k")

        with pytest.raises(ProviderTimeout):
            await adapter.fetch_quotes(ORIGIN, DESTINATION, time.monotonic() - 1)
        mock_client.request.assert_not_called()


@pytest.mark.asyncio
class TestNammaYatriAdapter:
    """Test Namma Yatri request construction and parsing"""

    async def test_parses_estimate(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["path"] = request.url.path
            return httpx.Response(200, json={"estimatedFare": 85, "estimatedTime": 5})

        async with client_for(handler) as client:
            adapter = NammaYatriAdapter(client, "https://ny.test")
            quotes = await adapter.fetch_quotes(ORIGIN, DESTINATION, deadline_in())

        assert seen["path"] == "/v1/estimate"
        assert seen["body"]["fromLocation"] == {"lat": 12.9716, "lon": 77.5946}
        assert len(quotes) == 1
        quote = quotes[0]
        assert quote.provider_name == "Namma Yatri"
        assert quote.product_type == "Auto"
        assert quote.price_amount == 8500
        assert quote.eta_seconds == 300
        assert quote.booking_reference == "nammayatri://ride?from=12.9716,77.5946&to=12.9352,77.6245"

    async def test_negative_fare_is_protocol_error(self):
        def handler(request):
            return httpx.Response(200, json={"estimatedFare": -1, "estimatedTime": 5})

        async with client_for(handler) as client:
            with pytest.raises(ProviderProtocolError):
                await NammaYatriAdapter(client).fetch_quotes(ORIGIN, DESTINATION, deadline_in())

    async def test_string_fare_is_protocol_error(self):
        def handler(request):
            return httpx.Response(200, json={"estimatedFare": "cheap", "estimatedTime": 5})

        async with client_for(handler) as client:
            with pytest.raises(ProviderProtocolError):
                await NammaYatriAdapter(client).fetch_quotes(ORIGIN, DESTINATION, deadline_in())


@pytest.mark.asyncio
class TestStaticQuoteAdapter:
    """Test the fixed catalogue adapters"""

    async def test_ola_catalogue(self):
        quotes = await ola_adapter().fetch_quotes(ORIGIN, DESTINATION, deadline_in())
        assert {(q.product_type, q.price_amount) for q in quotes} == {("Mini", 18000), ("Auto", 9000)}

    async def test_rapido_links_per_product(self):
        """Bike links carry the route; Auto uses the plain site link"""
        quotes = await rapido_adapter().fetch_quotes(ORIGIN, DESTINATION, deadline_in())
        links = {q.product_type: q.booking_reference for q in quotes}
        assert "from=12.9716,77.5946" in links["Bike"]
        assert links["Auto"] == "https://www.rapido.bike/"

    async def test_injected_failure(self):
        adapter = StaticQuoteAdapter("x", "X", [], failure=ProviderUnavailable("X", "down"))
        with pytest.raises(ProviderUnavailable):
            await adapter.fetch_quotes(ORIGIN, DESTINATION, deadline_in())
        assert adapter.calls == 1

    async def test_delay_past_deadline_times_out(self):
        adapter = ola_adapter(delay=1.0)
        with pytest.raises(ProviderTimeout):
            await adapter.fetch_quotes(ORIGIN, DESTINATION, deadline_in(0.05))


class TestRegistry:
    """Test adapter construction from configuration"""

    def test_builds_in_config_order(self):
        config = AggregatorConfig(
            enabled_providers=("rapido", "uber", "namma_yatri", "ola"),
            uber_api_key="k",
        )
        adapters = build_adapters(config, MagicMock())
        assert [a.name for a in adapters] == ["rapido", "uber", "namma_yatri", "ola"]

    def test_uber_requires_key(self):
        config = AggregatorConfig(enabled_providers=("uber",))
        with pytest.raises(ValueError):
            build_adapters(config, MagicMock())

    def test_minor_units(self):
        assert to_minor_units(180) == 18000
        assert to_minor_units("92.5") == 9250
        with pytest.raises(TypeError):
            to_minor_units(None)
        with pytest.raises(ValueError):
            to_minor_units(-5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
