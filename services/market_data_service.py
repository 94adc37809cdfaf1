"""
Market Data Service - live coin quotes from the CoinMarketCap listing proxy

Quotes feed the portfolio aggregator's live prices and the market ticker.
The last successful response is kept in memory per service instance and
returned when the proxy is unreachable.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import aiohttp

from config import Config

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 100


@dataclass
class MarketQuote:
    symbol: str
    name: str
    price: Decimal
    percent_change_24h: Decimal
    percent_change_7d: Decimal
    market_cap: Decimal
    volume_24h: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "percent_change_24h": self.percent_change_24h,
            "percent_change_7d": self.percent_change_7d,
            "market_cap": self.market_cap,
            "volume_24h": self.volume_24h,
        }


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def parse_listing(payload: Any, convert: str = "USD") -> List[MarketQuote]:
    """
    Parse a listings/latest payload. Accepts the raw CMC envelope
    ({"data": [...]}) or a bare list of coins; malformed entries are skipped.
    """
    entries = payload.get("data", []) if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        return []

    quotes: List[MarketQuote] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        quote = (entry.get("quote") or {}).get(convert) or {}
        symbol = str(entry.get("symbol") or "").upper()
        if not symbol or "price" not in quote:
            logger.debug(f"Skipping malformed market entry: {entry.get('symbol')}")
            continue
        quotes.append(MarketQuote(
            symbol=symbol,
            name=str(entry.get("name") or symbol),
            price=_to_decimal(quote.get("price")),
            percent_change_24h=_to_decimal(quote.get("percent_change_24h")),
            percent_change_7d=_to_decimal(quote.get("percent_change_7d")),
            market_cap=_to_decimal(quote.get("market_cap")),
            volume_24h=_to_decimal(quote.get("volume_24h")),
        ))
    return quotes


def price_map(quotes: List[MarketQuote]) -> Dict[str, Decimal]:
    """{symbol: price} for the portfolio aggregator"""
    return {q.symbol: q.price for q in quotes if q.price > 0}


def format_price(price) -> str:
    """$1,234.56 for prices of at least 1, six decimals below that"""
    value = _to_decimal(price)
    if value >= 1:
        return f"${value:,.2f}"
    return f"${value:.6f}"


def format_market_cap(market_cap) -> str:
    value = _to_decimal(market_cap)
    for threshold, suffix in ((Decimal("1e12"), "T"), (Decimal("1e9"), "B"), (Decimal("1e6"), "M")):
        if value >= threshold:
            return f"${value / threshold:.2f}{suffix}"
    return f"${value:,.0f}"


class MarketDataService:
    """Async client for the market data proxy"""

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[int] = None):
        self.url = url or Config.MARKET_DATA_URL
        self.api_key = api_key if api_key is not None else Config.MARKET_DATA_API_KEY
        self.timeout = timeout or Config.MARKET_DATA_TIMEOUT
        self._cached_quotes: List[MarketQuote] = []

    @property
    def cached_quotes(self) -> List[MarketQuote]:
        return list(self._cached_quotes)

    async def _fetch_listing(self, limit: int, convert: str) -> Any:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        params = {"limit": str(limit), "convert": convert}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(headers=headers) as session:
            async with session.get(self.url, params=params, timeout=timeout) as response:
                if response.status != 200:
                    body = await response.text()
                    raise aiohttp.ClientResponseError(
                        response.request_info, response.history,
                        status=response.status, message=body[:200],
                    )
                return await response.json(content_type=None)

    async def fetch_quotes(self, limit: Optional[int] = None, convert: str = "USD") -> List[MarketQuote]:
        """
        Fetch the top listings. On any transport or payload failure the last
        good result is returned instead (empty before the first success).
        """
        limit = max(MIN_LIMIT, min(MAX_LIMIT, int(limit or Config.MARKET_DATA_LIMIT)))
        convert = (convert or "USD").upper()

        try:
            payload = await self._fetch_listing(limit, convert)
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ MARKET_DATA_TIMEOUT: {self.url} - serving {len(self._cached_quotes)} cached quotes")
            return self.cached_quotes
        except (aiohttp.ClientError, ValueError) as e:
            logger.warning(f"⚠️ MARKET_DATA_UNAVAILABLE: {e} - serving {len(self._cached_quotes)} cached quotes")
            return self.cached_quotes

        quotes = parse_listing(payload, convert)
        if not quotes:
            logger.warning("⚠️ MARKET_DATA_EMPTY: proxy returned no usable quotes - serving cache")
            return self.cached_quotes

        self._cached_quotes = quotes
        logger.info(f"📡 MARKET_DATA_REFRESHED: {len(quotes)} quotes")
        return self.cached_quotes

    async def live_prices(self, symbols: Optional[List[str]] = None) -> Dict[str, Decimal]:
        prices = price_map(await self.fetch_quotes())
        if symbols:
            wanted = {s.upper() for s in symbols}
            prices = {s: p for s, p in prices.items() if s in wanted}
        return prices
