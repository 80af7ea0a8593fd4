"""Bitcoin market operations: price, volume, change, high/low and sparkline.

Price has the widest fallback chain (CoinGecko, Binance, Coinbase,
Kraken); exchanges that do not quote the requested currency are left
out of the chain.  Change, high/low and the detailed market summary
are all derived from one CoinGecko coin document, which is cached once
and shared.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode

from chainchirp.core.cache import CacheLayer, make_key
from chainchirp.core.fetch_client import FetchClient, RequestOptions
from chainchirp.core.models import (
    HighLowData,
    MarketSummary,
    PriceChangeData,
    PriceData,
    SparklineData,
    VolumeData,
    utc_now,
)
from chainchirp.core.protocols import Parser
from chainchirp.exceptions import ConfigurationError
from chainchirp.infra.providers import BINANCE, COINBASE, COINGECKO, KRAKEN

logger = logging.getLogger(__name__)

PRICE_TTL: float = 30
VOLUME_TTL: float = 60
COIN_DATA_TTL: float = 30
HIGHLOW_TTL: float = 60
SPARKLINE_TTL: float = 120

SUPPORTED_TIMEFRAMES: tuple[str, ...] = ("1h", "24h", "7d", "30d")

# Days of history requested per timeframe; 1h is cut from the 24h series.
_TIMEFRAME_DAYS: dict[str, int] = {"1h": 1, "24h": 1, "7d": 7, "30d": 30}
_POINTS_PER_HOUR: int = 12

_KRAKEN_PAIRS: dict[str, str] = {
    "usd": "XBTUSD",
    "eur": "XBTEUR",
    "gbp": "XBTGBP",
    "jpy": "XBTJPY",
}

# Volume moves with price but less sharply.
_VOLUME_DAMPING: float = 0.8

_COIN_DOCUMENT_QUERY: dict[str, str] = {
    "localization": "false",
    "tickers": "false",
    "market_data": "true",
    "community_data": "false",
    "developer_data": "false",
    "sparkline": "false",
}


def _with_query(path: str, **params: Any) -> str:
    return f"{path}?{urlencode(params)}"


def _for_currency(table: Any, currency: str) -> float:
    """Pick *currency* from a CoinGecko per-currency table, else USD, else 0."""
    if not isinstance(table, dict):
        return 0.0
    value = table.get(currency)
    if value is None:
        value = table.get("usd")
    return float(value or 0)


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# ---------------------------------------------------------------------------
# Price parsers (one per provider)
# ---------------------------------------------------------------------------

def coingecko_price_parser(currency: str) -> Parser:
    def parse(body: dict[str, Any]) -> PriceData:
        quote = body["bitcoin"]
        price = quote[currency]
        if not isinstance(price, (int, float)):
            raise ValueError(f"no {currency} price in response")
        change = quote.get(f"{currency}_24h_change")
        market_cap = quote.get(f"{currency}_market_cap")
        return PriceData(
            price=float(price),
            currency=currency,
            source=COINGECKO,
            change_percent_24h=float(change) if change is not None else None,
            market_cap=float(market_cap) if market_cap is not None else None,
        )

    return parse


def parse_binance_ticker(body: dict[str, Any]) -> PriceData:
    """Parse Binance ``/ticker/24hr`` for BTCUSDT, treated as USD."""
    return PriceData(
        price=float(body["lastPrice"]),
        currency="usd",
        source=BINANCE,
        change_percent_24h=float(body["priceChangePercent"]),
    )


def coinbase_price_parser(currency: str) -> Parser:
    def parse(body: dict[str, Any]) -> PriceData:
        rate = body["data"]["rates"][currency.upper()]
        return PriceData(price=float(rate), currency=currency, source=COINBASE)

    return parse


def kraken_price_parser(currency: str) -> Parser:
    def parse(body: dict[str, Any]) -> PriceData:
        if body.get("error"):
            raise ValueError("; ".join(body["error"]))
        ticker = next(iter(body["result"].values()))
        last = float(ticker["c"][0])
        opening = float(ticker["o"])
        change = (last - opening) / opening * 100 if opening else None
        return PriceData(
            price=last,
            currency=currency,
            source=KRAKEN,
            change_percent_24h=change,
        )

    return parse


# ---------------------------------------------------------------------------
# Volume, change, high/low and sparkline parsers
# ---------------------------------------------------------------------------

def coingecko_volume_parser(currency: str) -> Parser:
    def parse(body: dict[str, Any]) -> VolumeData:
        quote = body["bitcoin"]
        volume = float(quote[f"{currency}_24h_vol"])
        price_change = float(quote.get(f"{currency}_24h_change") or 0)
        updated = quote.get("last_updated_at")
        return VolumeData(
            volume_24h=volume,
            volume_change_24h=volume * price_change / 100 * _VOLUME_DAMPING,
            volume_change_percent_24h=price_change * _VOLUME_DAMPING,
            currency=currency,
            timestamp=(
                datetime.fromtimestamp(updated, tz=timezone.utc) if updated else utc_now()
            ),
        )

    return parse


def parse_binance_volume(body: dict[str, Any]) -> VolumeData:
    """Parse Binance ``/ticker/24hr``; quote volume is in USDT."""
    volume = float(body["quoteVolume"])
    price_change = float(body["priceChangePercent"])
    return VolumeData(
        volume_24h=volume,
        volume_change_24h=volume * price_change / 100 * _VOLUME_DAMPING,
        volume_change_percent_24h=price_change * _VOLUME_DAMPING,
        currency="usd",
        timestamp=datetime.fromtimestamp(int(body["closeTime"]) / 1000, tz=timezone.utc),
    )


def parse_coin_document(body: dict[str, Any]) -> dict[str, Any]:
    market = body["market_data"]
    if not isinstance(market, dict):
        raise ValueError("market_data missing")
    return market


def build_price_change(market: dict[str, Any], currency: str) -> PriceChangeData:
    def percent(period: str) -> float:
        in_currency = market.get(f"price_change_percentage_{period}_in_currency")
        if isinstance(in_currency, dict) and currency in in_currency:
            return float(in_currency[currency] or 0)
        return float(market.get(f"price_change_percentage_{period}") or 0)

    change_24h = market.get("price_change_24h_in_currency")
    return PriceChangeData(
        current=_for_currency(market.get("current_price"), currency),
        change_24h=(
            _for_currency(change_24h, currency)
            if isinstance(change_24h, dict)
            else float(market.get("price_change_24h") or 0)
        ),
        change_percent_1h=percent("1h"),
        change_percent_24h=percent("24h"),
        change_percent_7d=percent("7d"),
        change_percent_30d=percent("30d"),
        currency=currency,
    )


def build_high_low(market: dict[str, Any], currency: str) -> HighLowData:
    return HighLowData(
        current=_for_currency(market.get("current_price"), currency),
        high_24h=_for_currency(market.get("high_24h"), currency),
        low_24h=_for_currency(market.get("low_24h"), currency),
        ath=_for_currency(market.get("ath"), currency),
        ath_date=_parse_date((market.get("ath_date") or {}).get(currency)),
        atl=_for_currency(market.get("atl"), currency),
        atl_date=_parse_date((market.get("atl_date") or {}).get(currency)),
        currency=currency,
    )


def build_market_summary(market: dict[str, Any], currency: str) -> MarketSummary:
    """Collect the detailed price view from a CoinGecko ``market_data`` table."""
    change = build_price_change(market, currency)
    return MarketSummary(
        price=change.current,
        currency=currency,
        change_24h=change.change_24h,
        change_percent_24h=change.change_percent_24h,
        high_24h=_for_currency(market.get("high_24h"), currency),
        low_24h=_for_currency(market.get("low_24h"), currency),
        volume_24h=_for_currency(market.get("total_volume"), currency),
        market_cap=_for_currency(market.get("market_cap"), currency),
        ath=_for_currency(market.get("ath"), currency),
        atl=_for_currency(market.get("atl"), currency),
        last_updated=_parse_date(market.get("last_updated")),
    )


def market_chart_parser(timeframe: str, currency: str) -> Parser:
    def parse(body: dict[str, Any]) -> SparklineData:
        prices = tuple(float(price) for _, price in body["prices"])
        if timeframe == "1h":
            prices = prices[-(_POINTS_PER_HOUR + 1):]
        if not prices:
            raise ValueError("no price data available for sparkline")
        return SparklineData(prices=prices, timeframe=timeframe, currency=currency)

    return parse


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class MarketService:
    """Cached market lookups backed by a shared :class:`FetchClient`."""

    def __init__(self, client: FetchClient, cache: CacheLayer) -> None:
        self._client = client
        self._cache = cache

    async def price(self, currency: str = "usd") -> PriceData:
        async def fetch() -> PriceData:
            return await self._client.fetch(
                "/simple/price", self._price_options(currency), price_chain(currency),
            )

        return await self._cache.get_or_fetch(
            make_key("price", currency=currency), PRICE_TTL, fetch,
        )

    async def volume(self, currency: str = "usd") -> VolumeData:
        chain = (COINGECKO, BINANCE) if currency == "usd" else (COINGECKO,)

        async def fetch() -> VolumeData:
            return await self._client.fetch(
                "/simple/price",
                RequestOptions(
                    parser=coingecko_volume_parser(currency),
                    parsers={BINANCE: parse_binance_volume},
                    paths={
                        COINGECKO: _with_query(
                            "/simple/price",
                            ids="bitcoin",
                            vs_currencies=currency,
                            include_24hr_vol="true",
                            include_24hr_change="true",
                            include_last_updated_at="true",
                        ),
                        BINANCE: _with_query("/ticker/24hr", symbol="BTCUSDT"),
                    },
                ),
                chain,
            )

        return await self._cache.get_or_fetch(
            make_key("volume", currency=currency), VOLUME_TTL, fetch,
        )

    async def market_summary(self, currency: str = "usd") -> MarketSummary:
        """Price plus 24h range, volume, market cap, ATH and ATL."""
        market = await self._coin_market_data()
        return build_market_summary(market, currency)

    async def change(self, currency: str = "usd") -> PriceChangeData:
        market = await self._coin_market_data()
        return build_price_change(market, currency)

    async def high_low(self, currency: str = "usd") -> HighLowData:
        async def fetch() -> HighLowData:
            return build_high_low(await self._coin_market_data(), currency)

        return await self._cache.get_or_fetch(
            make_key("highlow", currency=currency), HIGHLOW_TTL, fetch,
        )

    async def sparkline(self, currency: str = "usd", timeframe: str = "7d") -> SparklineData:
        if timeframe not in _TIMEFRAME_DAYS:
            raise ConfigurationError(
                f"Unsupported timeframe: {timeframe}",
                hint=f"Supported: {', '.join(SUPPORTED_TIMEFRAMES)}",
            )

        async def fetch() -> SparklineData:
            return await self._client.fetch(
                "/coins/bitcoin/market_chart",
                RequestOptions(
                    params={"vs_currency": currency, "days": _TIMEFRAME_DAYS[timeframe]},
                    parser=market_chart_parser(timeframe, currency),
                ),
                (COINGECKO,),
            )

        return await self._cache.get_or_fetch(
            make_key("sparkline", currency=currency, timeframe=timeframe),
            SPARKLINE_TTL,
            fetch,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _coin_market_data(self) -> dict[str, Any]:
        async def fetch() -> dict[str, Any]:
            return await self._client.fetch(
                "/coins/bitcoin",
                RequestOptions(params=_COIN_DOCUMENT_QUERY, parser=parse_coin_document),
                (COINGECKO,),
            )

        return await self._cache.get_or_fetch(make_key("coin"), COIN_DATA_TTL, fetch)

    @staticmethod
    def _price_options(currency: str) -> RequestOptions:
        return RequestOptions(
            parser=coingecko_price_parser(currency),
            parsers={
                BINANCE: parse_binance_ticker,
                COINBASE: coinbase_price_parser(currency),
                KRAKEN: kraken_price_parser(currency),
            },
            paths={
                COINGECKO: _with_query(
                    "/simple/price",
                    ids="bitcoin",
                    vs_currencies=currency,
                    include_24hr_change="true",
                    include_market_cap="true",
                ),
                BINANCE: _with_query("/ticker/24hr", symbol="BTCUSDT"),
                COINBASE: _with_query("/exchange-rates", currency="BTC"),
                KRAKEN: _with_query("/Ticker", pair=_KRAKEN_PAIRS.get(currency, "XBTUSD")),
            },
        )


def price_chain(currency: str) -> tuple[str, ...]:
    """Providers able to quote *currency*, in preference order."""
    chain = [COINGECKO]
    if currency == "usd":
        chain.append(BINANCE)
    chain.append(COINBASE)
    if currency in _KRAKEN_PAIRS:
        chain.append(KRAKEN)
    return tuple(chain)
