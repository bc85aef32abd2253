"""Layered market data access: cache → remote provider → simulation.

The aggregate snapshot path never fails; it degrades through the tiers and
labels the result with where the data came from. Single-symbol lookups are
narrower: quotes surface remote failures, overviews fall back to the
simulated directory, and daily series always produce 30 points.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from typing import AsyncIterator, Awaitable, Callable, TypeVar

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketfeed.constants import (
    ENRICH_BATCH_SIZE,
    RANKING_SIZE,
    RESERVED_TICKERS,
    SERIES_LENGTH,
    SNAPSHOT_TICKER_RE,
    is_company_name,
)
from marketfeed.exceptions import (
    CacheError,
    ConfigurationError,
    MarketDataError,
    RemoteError,
    SymbolNotFoundError,
)
from marketfeed.models import CachedStock
from marketfeed.repositories import StockCacheRepository
from marketfeed.schemas.market import (
    ChartPoint,
    CompanyOverview,
    Quote,
    RankingSnapshot,
    SymbolSearchResult,
)
from marketfeed.services.market_providers.base import MarketDataProvider
from marketfeed.services.results import Error, Loading, Result, Success
from marketfeed.services.simulation import (
    CompanyDirectory,
    MarketSimulationEngine,
    company_name,
    market_session,
    session_label,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SEARCH_LIMIT = 10
_FALLBACK_BASE_PRICE = 100.0


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _midnight_ms(day: date) -> int:
    return to_epoch_ms(datetime.combine(day, time.min))


def is_displayable(quote: Quote) -> bool:
    """Whether a quote may appear in a snapshot: sane ticker, not reserved, positive price and volume."""
    ticker = quote.ticker
    return (
        bool(SNAPSHOT_TICKER_RE.match(ticker))
        and ticker.upper() not in RESERVED_TICKERS
        and quote.price > 0
        and quote.volume > 0
    )


def filter_quotes(quotes: list[Quote]) -> list[Quote]:
    return [q for q in quotes if is_displayable(q)]


def _row_to_quote(row: CachedStock) -> Quote:
    return Quote(
        ticker=row.symbol,
        price=row.price,
        change_amount=row.change,
        change_percent=row.change_percent,
        volume=row.volume,
    )


def rank_quotes(quotes: list[Quote]) -> tuple[list[Quote], list[Quote], list[Quote]]:
    """Split a flat quote list into (gainers, losers, most_active), each ordered and truncated."""
    gainers = sorted((q for q in quotes if q.change_percent > 0), key=lambda q: q.change_percent, reverse=True)
    losers = sorted((q for q in quotes if q.change_percent < 0), key=lambda q: q.change_percent)
    most_active = sorted(quotes, key=lambda q: q.volume, reverse=True)
    return gainers[:RANKING_SIZE], losers[:RANKING_SIZE], most_active[:RANKING_SIZE]


class MarketDataGateway:
    def __init__(
        self,
        provider: MarketDataProvider,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        api_key: str = "",
        engine: MarketSimulationEngine | None = None,
        freshness_seconds: int = 300,
        retention_seconds: int = 86400,
        remote_timeout: float = 10.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.provider = provider
        self.api_key = api_key
        self.engine = engine or MarketSimulationEngine()
        self.freshness_ms = freshness_seconds * 1000
        self.retention_ms = retention_seconds * 1000
        self.remote_timeout = remote_timeout
        self._session_factory = session_factory
        self.clock = clock

    # ── Plumbing ──────────────────────────────────────────────────────

    @asynccontextmanager
    async def _cache(self) -> AsyncIterator[StockCacheRepository]:
        try:
            async with self._session_factory() as db:
                yield StockCacheRepository(db)
        except SQLAlchemyError as exc:
            raise CacheError(f"Cache store failure: {exc}") from exc

    def _require_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("No market data API key configured")
        return self.api_key

    async def _remote(self, call: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.remote_timeout)
        except asyncio.TimeoutError as exc:
            raise RemoteError(f"{what} timed out after {self.remote_timeout:g}s") from exc

    async def _persist(self, quotes: list[Quote], now: datetime) -> None:
        """Upsert quotes and prune expired rows. Cache failures are logged, not raised."""
        if not quotes:
            return
        now_ms = to_epoch_ms(now)
        names = {q.ticker: company_name(q.ticker) for q in quotes}
        try:
            async with self._cache() as repo:
                await repo.bulk_upsert(quotes, names, now_ms)
                pruned = await repo.delete_older_than(now_ms - self.retention_ms)
        except CacheError:
            logger.exception("Failed to persist %d quotes", len(quotes))
            return
        if pruned:
            logger.info("Pruned %d expired cached stocks", pruned)

    # ── Snapshot ──────────────────────────────────────────────────────

    async def fetch_snapshot(self, force_refresh: bool = False) -> RankingSnapshot:
        """Return the best available ranking snapshot. Never raises."""
        now = self.clock()

        if not force_refresh:
            cached = await self._cached_snapshot(now, max_age_ms=self.freshness_ms)
            if cached is not None:
                logger.info("Serving cached snapshot")
                return cached

        try:
            live = await self._live_snapshot(now)
            if live is not None:
                return live
            return await self._simulated_snapshot(now)
        except Exception:
            logger.exception("Unexpected failure while building snapshot")

        stale = await self._cached_snapshot(now, max_age_ms=None)
        if stale is not None:
            logger.info("Serving stale cached snapshot after failure")
            return stale
        return await self._simulated_snapshot(now)

    async def _cached_snapshot(self, now: datetime, max_age_ms: int | None) -> RankingSnapshot | None:
        try:
            async with self._cache() as repo:
                latest = await repo.most_recent_timestamp()
                if latest is None:
                    return None
                if max_age_ms is not None and to_epoch_ms(now) - latest >= max_age_ms:
                    return None
                rows = await repo.get_all()
        except CacheError:
            logger.exception("Cache read failed, treating as miss")
            return None

        gainers, losers, most_active = rank_quotes(filter_quotes([_row_to_quote(r) for r in rows]))
        if not (gainers or losers or most_active):
            return None

        stamp = datetime.fromtimestamp(latest / 1000).strftime("%b %d, %H:%M")
        return RankingSnapshot(
            gainers=gainers,
            losers=losers,
            most_active=most_active,
            freshness="cached",
            market_session=market_session(now),
            last_updated=f"Cached Data - {stamp}",
        )

    async def _live_snapshot(self, now: datetime) -> RankingSnapshot | None:
        """Fetch and filter remote rankings. None means: use the simulation."""
        try:
            api_key = self._require_key()
        except ConfigurationError:
            logger.warning("No API key configured, using simulated market data")
            return None

        try:
            payload = await self._remote(self.provider.fetch_rankings(api_key), "Rankings request")
        except RemoteError as exc:
            logger.warning("Remote rankings unavailable, using simulated market data: %s", exc)
            return None

        gainers = filter_quotes(payload.gainers)
        losers = filter_quotes(payload.losers)
        most_active = filter_quotes(payload.most_active)
        dropped = payload.total - len(gainers) - len(losers) - len(most_active)
        if dropped:
            logger.info("Filtered %d invalid quotes from remote rankings", dropped)

        if not (gainers or losers or most_active):
            logger.warning("Remote rankings were empty after filtering, using simulated market data")
            return None

        await self._persist([*gainers, *losers, *most_active], now)
        gainers.sort(key=lambda q: q.change_percent, reverse=True)
        losers.sort(key=lambda q: q.change_percent)
        most_active.sort(key=lambda q: q.volume, reverse=True)
        return RankingSnapshot(
            gainers=gainers[:RANKING_SIZE],
            losers=losers[:RANKING_SIZE],
            most_active=most_active[:RANKING_SIZE],
            freshness="live",
            market_session=market_session(now),
            last_updated=payload.last_updated or session_label(now),
        )

    async def _simulated_snapshot(self, now: datetime) -> RankingSnapshot:
        simulated = await asyncio.to_thread(self.engine.generate_snapshot, now)
        snapshot = simulated.model_copy(update={
            "gainers": filter_quotes(simulated.gainers),
            "losers": filter_quotes(simulated.losers),
            "most_active": filter_quotes(simulated.most_active),
        })
        await self._persist([*snapshot.gainers, *snapshot.losers, *snapshot.most_active], now)
        logger.info("Serving simulated snapshot (%s)", snapshot.last_updated)
        return snapshot

    # ── Single symbol ─────────────────────────────────────────────────

    async def fetch_quote(self, symbol: str) -> Quote:
        """Fetch one live quote. Raises ConfigurationError or RemoteError; no simulation fallback.

        The quote is not cached: cached rows only ever come from ranking snapshots.
        """
        symbol = symbol.strip().upper()
        api_key = self._require_key()
        return await self._remote(self.provider.fetch_quote(symbol, api_key), f"Quote request for {symbol}")

    async def fetch_company_overview(self, symbol: str) -> CompanyOverview:
        symbol = symbol.strip().upper()
        try:
            api_key = self._require_key()
            overview = await self._remote(
                self.provider.fetch_overview(symbol, api_key), f"Overview request for {symbol}",
            )
            if overview.name:
                return overview
            logger.warning("Remote overview for %s is empty, using simulated data", symbol)
        except ConfigurationError:
            logger.warning("No API key configured, simulating overview for %s", symbol)
        except RemoteError as exc:
            logger.warning("Remote overview for %s unavailable: %s", symbol, exc)

        overview = await asyncio.to_thread(self.engine.generate_company_overview, symbol)
        if overview is None:
            raise SymbolNotFoundError(symbol)
        return overview

    async def fetch_daily_series(self, symbol: str) -> list[ChartPoint]:
        """Return SERIES_LENGTH daily closes, synthesizing them when the remote can't."""
        symbol = symbol.strip().upper()
        today = self.clock().date()
        anchor: float | None = None

        try:
            api_key = self._require_key()
            df = await self._remote(
                self.provider.fetch_daily_series(symbol, api_key), f"Daily series request for {symbol}",
            )
            closes = _valid_closes(df)
            if not closes.empty:
                anchor = float(closes.iloc[-1])
            if len(closes) >= SERIES_LENGTH:
                return [
                    ChartPoint(
                        date=ts.date().isoformat(),
                        price=round(float(close), 2),
                        timestamp=_midnight_ms(ts.date()),
                    )
                    for ts, close in closes.iloc[-SERIES_LENGTH:].items()
                ]
            logger.warning("Only %d valid closes for %s, synthesizing series", len(closes), symbol)
        except ConfigurationError:
            logger.warning("No API key configured, simulating series for %s", symbol)
        except RemoteError as exc:
            logger.warning("Remote series for %s unavailable: %s", symbol, exc)

        base_price = anchor or await self._cached_price(symbol) or _directory_price(self.engine.directory, symbol)
        return await asyncio.to_thread(self.engine.generate_daily_series, symbol, base_price, today)

    async def _cached_price(self, symbol: str) -> float | None:
        try:
            async with self._cache() as repo:
                row = await repo.get_by_symbol(symbol)
        except CacheError:
            logger.exception("Cache read failed for %s", symbol)
            return None
        if row is not None and row.price > 0:
            return row.price
        return None

    # ── Search, enrichment, housekeeping ──────────────────────────────

    async def fetch_search(self, query: str) -> list[SymbolSearchResult]:
        """Cached matches first, then remote matches not already listed."""
        query = query.strip()
        if not query:
            return []

        local: list[SymbolSearchResult] = []
        try:
            async with self._cache() as repo:
                rows = await repo.search(query, limit=_SEARCH_LIMIT)
            local = [SymbolSearchResult(symbol=r.symbol, name=r.name) for r in rows]
        except CacheError:
            logger.exception("Cache search failed for %r", query)

        try:
            api_key = self._require_key()
            remote = await self._remote(self.provider.search_symbols(query, api_key), "Symbol search")
        except MarketDataError as exc:
            if local:
                logger.warning("Remote search failed, returning %d cached matches: %s", len(local), exc)
                return local
            raise

        seen = {r.symbol for r in local}
        merged = local + [r for r in remote if r.symbol not in seen]
        return merged[:_SEARCH_LIMIT]

    async def enrich_company_names(self, symbols: list[str] | None = None) -> int:
        """Replace ticker-only cached names with remote company names.

        Looks at ``symbols`` (or the whole cache) and enriches at most
        ENRICH_BATCH_SIZE of them concurrently. Returns the number updated.
        """
        try:
            api_key = self._require_key()
        except ConfigurationError:
            return 0

        try:
            async with self._cache() as repo:
                rows = await repo.get_many(symbols) if symbols is not None else await repo.get_all()
        except CacheError:
            logger.exception("Cache read failed during name enrichment")
            return 0

        pending = [r.symbol for r in rows if r.name == r.symbol][:ENRICH_BATCH_SIZE]
        if not pending:
            return 0

        names = await asyncio.gather(*(self._remote_name(s, api_key) for s in pending))
        found = {s: n for s, n in zip(pending, names) if n}
        if not found:
            return 0

        try:
            async with self._cache() as repo:
                for symbol, name in found.items():
                    await repo.update_name(symbol, name)
        except CacheError:
            logger.exception("Failed to store enriched names")
            return 0
        logger.info("Enriched company names for %s", ", ".join(found))
        return len(found)

    async def _remote_name(self, symbol: str, api_key: str) -> str | None:
        try:
            overview = await self._remote(
                self.provider.fetch_overview(symbol, api_key), f"Overview request for {symbol}",
            )
        except RemoteError as exc:
            logger.warning("Name lookup for %s failed: %s", symbol, exc)
            return None
        return overview.name if is_company_name(overview.name, symbol) else None

    async def check_connection(self) -> str:
        """Probe the remote with a known symbol. Raises on failure."""
        quote = await self.fetch_quote("AAPL")
        return f"Connected. AAPL: ${quote.price:.2f}"

    async def list_cached(self) -> list[CachedStock]:
        async with self._cache() as repo:
            return await repo.get_all()

    async def get_cached(self, symbol: str) -> CachedStock | None:
        async with self._cache() as repo:
            return await repo.get_by_symbol(symbol)

    async def prune_cache(self) -> int:
        cutoff = to_epoch_ms(self.clock()) - self.retention_ms
        async with self._cache() as repo:
            return await repo.delete_older_than(cutoff)

    # ── Tri-state streams ─────────────────────────────────────────────

    async def _stream(self, make: Callable[[], Awaitable[T]]) -> AsyncIterator[Result[T]]:
        yield Loading()
        try:
            value = await make()
        except MarketDataError as exc:
            yield Error(str(exc))
        else:
            yield Success(value)

    def get_snapshot(self, force_refresh: bool = False) -> AsyncIterator[Result[RankingSnapshot]]:
        return self._stream(lambda: self.fetch_snapshot(force_refresh))

    def get_single_quote(self, symbol: str) -> AsyncIterator[Result[Quote]]:
        return self._stream(lambda: self.fetch_quote(symbol))

    def get_company_overview(self, symbol: str) -> AsyncIterator[Result[CompanyOverview]]:
        return self._stream(lambda: self.fetch_company_overview(symbol))

    def get_daily_series(self, symbol: str) -> AsyncIterator[Result[list[ChartPoint]]]:
        return self._stream(lambda: self.fetch_daily_series(symbol))

    def search_stocks(self, query: str) -> AsyncIterator[Result[list[SymbolSearchResult]]]:
        return self._stream(lambda: self.fetch_search(query))


def _valid_closes(df: pd.DataFrame) -> pd.Series:
    """Positive closing prices sorted by date."""
    if df is None or df.empty or "close" not in df.columns:
        return pd.Series(dtype=float)
    closes = pd.to_numeric(df["close"], errors="coerce").dropna()
    closes = closes[closes > 0]
    closes.index = pd.to_datetime(closes.index)
    return closes.sort_index()


def _directory_price(directory: CompanyDirectory, symbol: str) -> float:
    info = directory.get(symbol)
    return info.mid_price if info else _FALLBACK_BASE_PRICE
