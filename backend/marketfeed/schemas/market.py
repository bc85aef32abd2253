from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Freshness = Literal["live", "cached", "simulated"]
MarketSession = Literal["open", "after-hours", "weekend"]


class Quote(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticker: str = Field(description="Ticker symbol (e.g. AAPL)")
    price: float = Field(description="Latest traded price")
    change_amount: float = Field(description="Absolute price change for the session")
    change_percent: float = Field(description="Percentage change for the session")
    volume: int = Field(description="Session trading volume")


class RankingPayload(BaseModel):
    """Unfiltered ranking lists as returned by a remote provider."""

    model_config = ConfigDict(frozen=True)

    gainers: list[Quote] = Field(default_factory=list)
    losers: list[Quote] = Field(default_factory=list)
    most_active: list[Quote] = Field(default_factory=list)
    last_updated: str = ""

    @property
    def total(self) -> int:
        return len(self.gainers) + len(self.losers) + len(self.most_active)


class RankingSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    gainers: list[Quote] = Field(description="Top gainers, descending by change percent")
    losers: list[Quote] = Field(description="Top losers, ascending by change percent")
    most_active: list[Quote] = Field(description="Most traded, descending by volume")
    freshness: Freshness = Field(description="Where the data came from: live, cached or simulated")
    market_session: MarketSession = Field(description="Session the snapshot was taken in")
    last_updated: str = Field(default="", description="Human readable update label")

    def tickers(self) -> set[str]:
        return {q.ticker.upper() for q in (*self.gainers, *self.losers, *self.most_active)}


class CompanyOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    description: str = ""
    sector: str = ""
    industry: str = ""
    market_cap: int | None = Field(default=None, description="Market capitalization in USD")
    week_52_high: float | None = None
    week_52_low: float | None = None
    pe_ratio: float | None = None
    dividend_yield: float | None = Field(default=None, description="Dividend yield in percent")
    eps: float | None = None
    revenue_per_share: float | None = None


class ChartPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str = Field(description="Trading day (YYYY-MM-DD)")
    price: float = Field(description="Closing price")
    timestamp: int = Field(description="Midnight of the trading day, epoch milliseconds")


class SymbolSearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    type: str = "Equity"
    region: str = "United States"
    currency: str = "USD"


class CachedStockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    volume: int
    last_updated: int = Field(description="Epoch milliseconds of the last market-data write")
    in_watchlist: bool


class SymbolValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    valid: bool
    reason: str | None = Field(default=None, description="Why the symbol was rejected")
    source: Literal["snapshot", "overview"] | None = Field(
        default=None, description="Which existence check admitted the symbol"
    )
    name: str | None = None


class WatchlistAddRequest(BaseModel):
    symbol: str = Field(min_length=1, max_length=20, description="Ticker symbol to add")


class ConnectionStatus(BaseModel):
    ok: bool
    message: str
