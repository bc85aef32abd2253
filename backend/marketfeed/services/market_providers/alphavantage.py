"""Alpha Vantage market data provider: wires the transport to the parsers."""

import pandas as pd

from marketfeed.schemas.market import CompanyOverview, Quote, RankingPayload, SymbolSearchResult
from marketfeed.services.alphavantage import (
    AlphaVantageClient,
    parse_daily_series,
    parse_global_quote,
    parse_overview,
    parse_rankings,
    parse_search,
)
from marketfeed.services.market_providers.base import MarketDataProvider


class AlphaVantageProvider(MarketDataProvider):
    def __init__(self, client: AlphaVantageClient):
        self._client = client

    async def fetch_rankings(self, api_key: str) -> RankingPayload:
        body = await self._client.query("TOP_GAINERS_LOSERS", api_key)
        return parse_rankings(body)

    async def fetch_quote(self, symbol: str, api_key: str) -> Quote:
        body = await self._client.query("GLOBAL_QUOTE", api_key, symbol=symbol)
        return parse_global_quote(symbol, body)

    async def fetch_overview(self, symbol: str, api_key: str) -> CompanyOverview:
        body = await self._client.query("OVERVIEW", api_key, symbol=symbol)
        return parse_overview(symbol, body)

    async def fetch_daily_series(self, symbol: str, api_key: str) -> pd.DataFrame:
        body = await self._client.query("TIME_SERIES_DAILY", api_key, symbol=symbol, outputsize="compact")
        return parse_daily_series(symbol, body)

    async def search_symbols(self, query: str, api_key: str) -> list[SymbolSearchResult]:
        body = await self._client.query("SYMBOL_SEARCH", api_key, keywords=query)
        return parse_search(body)

    async def aclose(self) -> None:
        await self._client.aclose()
