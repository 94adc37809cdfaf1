"""
Market Data Service Tests
Most tests patch out the HTTP call; TestFetchListingOverHttp serves listings from a local aiohttp app
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aiohttp import test_utils, web

from services.market_data_service import (
    MarketDataService, format_market_cap, format_price, parse_listing, price_map,
)

LISTING = {
    "status": {"error_code": 0},
    "data": [
        {
            "id": 1,
            "name": "Bitcoin",
            "symbol": "BTC",
            "quote": {"USD": {
                "price": 43250.67, "percent_change_24h": 2.34, "percent_change_7d": 5.67,
                "market_cap": 847234567890, "volume_24h": 23456789012,
            }},
        },
        {
            "id": 2010,
            "name": "Cardano",
            "symbol": "ada",
            "quote": {"USD": {
                "price": 0.4567, "percent_change_24h": 0.89, "percent_change_7d": 7.23,
                "market_cap": 16234567890, "volume_24h": 567890123,
            }},
        },
        {"id": 99, "name": "Broken", "symbol": "BRK", "quote": {}},
    ],
}


class TestParsing:

    def test_parse_listing_skips_malformed_entries(self):
        quotes = parse_listing(LISTING)

        assert [q.symbol for q in quotes] == ["BTC", "ADA"]
        assert quotes[0].price == Decimal("43250.67")
        assert quotes[1].name == "Cardano"

    def test_parse_accepts_bare_list_and_garbage(self):
        assert len(parse_listing(LISTING["data"])) == 2
        assert parse_listing({"data": "nope"}) == []
        assert parse_listing(None) == []

    def test_price_map(self):
        prices = price_map(parse_listing(LISTING))
        assert prices == {"BTC": Decimal("43250.67"), "ADA": Decimal("0.4567")}


class TestFormatting:

    def test_format_price(self):
        assert format_price(43250.67) == "$43,250.67"
        assert format_price(1) == "$1.00"
        assert format_price(0.4567) == "$0.456700"

    def test_format_market_cap(self):
        assert format_market_cap(1_500_000_000_000) == "$1.50T"
        assert format_market_cap(847234567890) == "$847.23B"
        assert format_market_cap(16_234_567) == "$16.23M"
        assert format_market_cap(999_999) == "$999,999"


class TestFetchQuotes:

    @pytest.mark.asyncio
    async def test_successful_fetch_populates_cache(self):
        service = MarketDataService(url="http://market.test/listings", api_key="")

        with patch.object(service, "_fetch_listing", new=AsyncMock(return_value=LISTING)) as fetch:
            quotes = await service.fetch_quotes(limit=500)

        fetch.assert_awaited_once_with(100, "USD")
        assert [q.symbol for q in quotes] == ["BTC", "ADA"]
        assert len(service.cached_quotes) == 2

    @pytest.mark.asyncio
    async def test_failure_serves_cached_quotes(self):
        service = MarketDataService(url="http://market.test/listings", api_key="")

        with patch.object(service, "_fetch_listing", new=AsyncMock(return_value=LISTING)):
            await service.fetch_quotes()

        failing = AsyncMock(side_effect=aiohttp.ClientConnectionError("proxy down"))
        with patch.object(service, "_fetch_listing", new=failing):
            quotes = await service.fetch_quotes()

        assert [q.symbol for q in quotes] == ["BTC", "ADA"]

    @pytest.mark.asyncio
    async def test_failure_before_first_success_returns_empty(self):
        service = MarketDataService(url="http://market.test/listings", api_key="")

        with patch.object(service, "_fetch_listing", new=AsyncMock(side_effect=asyncio.TimeoutError())):
            assert await service.fetch_quotes() == []

    @pytest.mark.asyncio
    async def test_empty_payload_keeps_previous_cache(self):
        service = MarketDataService(url="http://market.test/listings", api_key="")

        with patch.object(service, "_fetch_listing", new=AsyncMock(return_value=LISTING)):
            await service.fetch_quotes()
        with patch.object(service, "_fetch_listing", new=AsyncMock(return_value={"data": []})):
            quotes = await service.fetch_quotes()

        assert len(quotes) == 2

    @pytest.mark.asyncio
    async def test_live_prices_filters_symbols(self):
        service = MarketDataService(url="http://market.test/listings", api_key="")

        with patch.object(service, "_fetch_listing", new=AsyncMock(return_value=LISTING)):
            prices = await service.live_prices(["btc"])

        assert prices == {"BTC": Decimal("43250.67")}


async def _serve_listings(handler) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_get("/listings", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


class TestFetchListingOverHttp:

    @pytest.mark.asyncio
    async def test_request_carries_limit_convert_and_api_key(self):
        seen = {}

        async def listings(request):
            seen["query"] = dict(request.query)
            seen["authorization"] = request.headers.get("Authorization")
            seen["apikey"] = request.headers.get("apikey")
            return web.json_response(LISTING)

        server = await _serve_listings(listings)
        try:
            service = MarketDataService(url=str(server.make_url("/listings")), api_key="cmc-key", timeout=5)
            quotes = await service.fetch_quotes(limit=2, convert="usd")
        finally:
            await server.close()

        assert seen["query"] == {"limit": "2", "convert": "USD"}
        assert seen["authorization"] == "Bearer cmc-key"
        assert seen["apikey"] == "cmc-key"
        assert [q.symbol for q in quotes] == ["BTC", "ADA"]

    @pytest.mark.asyncio
    async def test_no_auth_headers_without_api_key(self):
        seen = {}

        async def listings(request):
            seen["authorization"] = request.headers.get("Authorization")
            return web.json_response(LISTING)

        server = await _serve_listings(listings)
        try:
            service = MarketDataService(url=str(server.make_url("/listings")), api_key="", timeout=5)
            await service.fetch_quotes()
        finally:
            await server.close()

        assert seen["authorization"] is None

    @pytest.mark.asyncio
    async def test_server_error_raises_and_quotes_fall_back_to_cache(self):
        upstream = {"healthy": True}

        async def listings(request):
            if upstream["healthy"]:
                return web.json_response(LISTING)
            return web.Response(status=500, text="upstream exploded")

        server = await _serve_listings(listings)
        try:
            service = MarketDataService(url=str(server.make_url("/listings")), api_key="", timeout=5)
            await service.fetch_quotes()

            upstream["healthy"] = False
            with pytest.raises(aiohttp.ClientResponseError) as exc_info:
                await service._fetch_listing(5, "USD")
            quotes = await service.fetch_quotes()
        finally:
            await server.close()

        assert exc_info.value.status == 500
        assert "upstream exploded" in exc_info.value.message
        assert [q.symbol for q in quotes] == ["BTC", "ADA"]
