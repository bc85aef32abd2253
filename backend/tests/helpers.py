"""Shared test helpers for building quotes, provider mocks and gateways."""

from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

import pandas as pd

from marketfeed.exceptions import RemoteError
from marketfeed.schemas.market import Quote, RankingPayload
from marketfeed.services.market_gateway import MarketDataGateway
from marketfeed.services.market_providers.base import MarketDataProvider

# A Monday mid-session; every gateway in the tests reads this clock by default.
NOW = datetime(2026, 10, 19, 10, 4, 30)


def make_quote(
    ticker: str,
    price: float = 100.0,
    change_percent: float = 1.0,
    volume: int = 1_000_000,
) -> Quote:
    return Quote(
        ticker=ticker,
        price=price,
        change_amount=round(price * change_percent / 100, 2),
        change_percent=change_percent,
        volume=volume,
    )


def make_payload(
    gainers: list[Quote] | None = None,
    losers: list[Quote] | None = None,
    most_active: list[Quote] | None = None,
) -> RankingPayload:
    return RankingPayload(
        gainers=gainers or [],
        losers=losers or [],
        most_active=most_active or [],
        last_updated="2026-10-19 16:15:59 US/Eastern",
    )


def make_provider() -> AsyncMock:
    """Provider mock whose every remote call raises RemoteError by default."""
    provider = AsyncMock(spec=MarketDataProvider)
    provider.fetch_rankings.side_effect = RemoteError("offline")
    provider.fetch_quote.side_effect = RemoteError("offline")
    provider.fetch_overview.side_effect = RemoteError("offline")
    provider.fetch_daily_series.side_effect = RemoteError("offline")
    provider.search_symbols.side_effect = RemoteError("offline")
    return provider


def make_gateway(provider, session_factory, api_key: str = "test-key", **kwargs) -> MarketDataGateway:
    kwargs.setdefault("clock", lambda: NOW)
    return MarketDataGateway(provider, session_factory, api_key=api_key, **kwargs)


def make_daily_df(n_days: int = 40, base_price: float = 100.0, end: date = NOW.date()) -> pd.DataFrame:
    """DataFrame shaped like a parsed TIME_SERIES_DAILY response, oldest first."""
    dates = pd.date_range(end=end - timedelta(days=1), periods=n_days, freq="D")
    prices = [base_price + i * 0.5 for i in range(n_days)]
    return pd.DataFrame({
        "open": [p - 0.5 for p in prices],
        "high": [p + 1.0 for p in prices],
        "low": [p - 1.0 for p in prices],
        "close": prices,
        "volume": [1_000_000] * n_days,
    }, index=dates)


async def collect(stream) -> list:
    return [item async for item in stream]
