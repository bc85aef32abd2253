"""Abstract base class for remote market data providers."""

from abc import ABC, abstractmethod

import pandas as pd

from marketfeed.schemas.market import CompanyOverview, Quote, RankingPayload, SymbolSearchResult


class MarketDataProvider(ABC):
    """Provider interface for rankings, quotes, fundamentals and daily history.

    Every call takes the API key explicitly and raises RemoteError on any
    failure. Implementations never retry and never fall back; the gateway
    owns fallback ordering.
    """

    @abstractmethod
    async def fetch_rankings(self, api_key: str) -> RankingPayload:
        """Fetch unfiltered top gainers, losers and most-active lists."""

    @abstractmethod
    async def fetch_quote(self, symbol: str, api_key: str) -> Quote:
        """Fetch the current quote for one symbol."""

    @abstractmethod
    async def fetch_overview(self, symbol: str, api_key: str) -> CompanyOverview:
        """Fetch company fundamentals. Raises RemoteError for unknown symbols."""

    @abstractmethod
    async def fetch_daily_series(self, symbol: str, api_key: str) -> pd.DataFrame:
        """Fetch daily OHLCV bars.

        Returns DataFrame with index=date (ascending), columns=[open, high, low, close, volume].
        """

    @abstractmethod
    async def search_symbols(self, query: str, api_key: str) -> list[SymbolSearchResult]:
        """Search tickers by symbol or company name."""

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
