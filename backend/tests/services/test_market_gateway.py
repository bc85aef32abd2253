"""Tests for the layered market data gateway (cache → remote → simulation)."""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from marketfeed.constants import SERIES_LENGTH
from marketfeed.exceptions import ConfigurationError, RemoteError, SymbolNotFoundError
from marketfeed.repositories import StockCacheRepository
from marketfeed.schemas.market import CompanyOverview, SymbolSearchResult
from marketfeed.services.market_gateway import is_displayable, to_epoch_ms
from marketfeed.services.results import Error, Loading, Success
from tests.conftest import TestSession
from tests.helpers import NOW, collect, make_daily_df, make_gateway, make_payload, make_quote

pytestmark = pytest.mark.asyncio(loop_scope="function")


async def _seed_cache(quotes, age: timedelta):
    async with TestSession() as session:
        await StockCacheRepository(session).bulk_upsert(
            quotes, {}, to_epoch_ms(NOW - age),
        )


def _all_quotes(snapshot):
    return [*snapshot.gainers, *snapshot.losers, *snapshot.most_active]


# ---------------------------------------------------------------------------
# fetch_snapshot
# ---------------------------------------------------------------------------


async def test_throwing_remote_with_empty_cache_self_heals(provider, gateway):
    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "simulated"
    assert _all_quotes(snapshot)
    provider.fetch_rankings.assert_awaited_once()


async def test_simulated_snapshot_is_persisted(gateway):
    snapshot = await gateway.fetch_snapshot()

    async with TestSession() as session:
        rows = await StockCacheRepository(session).get_all()
    assert {r.symbol for r in rows} == snapshot.tickers()
    assert all(r.last_updated == to_epoch_ms(NOW) for r in rows)


async def test_fresh_cache_short_circuits_remote(provider, gateway):
    await _seed_cache(
        [make_quote("AAPL", change_percent=2.0), make_quote("KO", change_percent=-1.0)],
        age=timedelta(minutes=1),
    )

    snapshot = await gateway.fetch_snapshot(force_refresh=False)

    assert snapshot.freshness == "cached"
    assert snapshot.last_updated.startswith("Cached Data - ")
    assert [q.ticker for q in snapshot.gainers] == ["AAPL"]
    assert [q.ticker for q in snapshot.losers] == ["KO"]
    assert provider.fetch_rankings.await_count == 0


async def test_force_refresh_bypasses_fresh_cache(provider, gateway):
    await _seed_cache([make_quote("AAPL")], age=timedelta(minutes=1))

    snapshot = await gateway.fetch_snapshot(force_refresh=True)

    assert snapshot.freshness == "simulated"
    provider.fetch_rankings.assert_awaited_once()


async def test_stale_cache_is_not_served(provider, gateway):
    await _seed_cache([make_quote("AAPL")], age=timedelta(minutes=6))

    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "simulated"
    provider.fetch_rankings.assert_awaited_once()


async def test_cached_snapshot_applies_filter(provider, gateway):
    # Only invalid rows are fresh: the cache counts as a miss
    await _seed_cache(
        [make_quote("TEST"), make_quote("BRK.B"), make_quote("ZERO", price=0.0)],
        age=timedelta(minutes=1),
    )

    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "simulated"
    assert all(is_displayable(q) for q in _all_quotes(snapshot))


async def test_live_snapshot_is_filtered_and_persisted(provider, gateway):
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(
        gainers=[
            make_quote("NVDA", change_percent=4.0),
            make_quote("AAPL", change_percent=9.0),
            make_quote("TEST", change_percent=50.0),
            make_quote("BRK.A", change_percent=30.0),
            make_quote("TOOLONG", change_percent=20.0),
        ],
        losers=[
            make_quote("KO", change_percent=-1.5),
            make_quote("XYZ", price=0.0, change_percent=-60.0),
            make_quote("F", change_percent=-3.0),
        ],
        most_active=[
            make_quote("SPY", volume=90_000_000),
            make_quote("QQQ", volume=0),
            make_quote("SPXL+", volume=120_000_000),
        ],
    )

    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "live"
    assert snapshot.last_updated == "2026-10-19 16:15:59 US/Eastern"
    assert [q.ticker for q in snapshot.gainers] == ["AAPL", "NVDA"]
    assert [q.ticker for q in snapshot.losers] == ["F", "KO"]
    assert [q.ticker for q in snapshot.most_active] == ["SPXL+", "SPY"]
    assert all(is_displayable(q) for q in _all_quotes(snapshot))

    async with TestSession() as session:
        repo = StockCacheRepository(session)
        assert await repo.count() == 6
        assert await repo.get_by_symbol("TEST") is None
        aapl = await repo.get_by_symbol("AAPL")
    assert aapl.name == "Apple Inc."


async def test_live_snapshot_truncates_to_eight(provider, gateway):
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(
        gainers=[make_quote(f"G{i}", change_percent=float(i + 1)) for i in range(20)],
    )

    snapshot = await gateway.fetch_snapshot()

    assert len(snapshot.gainers) == 8
    assert snapshot.gainers[0].ticker == "G19"


async def test_empty_after_filter_payload_falls_back_to_simulation(provider, gateway):
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(
        gainers=[make_quote("TEST"), make_quote("MOCK")],
    )

    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "simulated"
    assert "TEST" not in snapshot.tickers()


async def test_no_api_key_never_calls_remote(provider):
    gateway = make_gateway(provider, TestSession, api_key="")

    snapshot = await gateway.fetch_snapshot(force_refresh=True)

    assert snapshot.freshness == "simulated"
    provider.fetch_rankings.assert_not_awaited()


async def test_remote_timeout_falls_back_to_simulation(provider):
    async def hang(api_key):
        await asyncio.sleep(5)

    provider.fetch_rankings.side_effect = hang
    gateway = make_gateway(provider, TestSession, remote_timeout=0.01)

    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "simulated"


async def test_unexpected_error_serves_stale_cache(provider, gateway):
    await _seed_cache([make_quote("AAPL", change_percent=2.0)], age=timedelta(hours=2))
    provider.fetch_rankings.side_effect = ValueError("boom")

    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "cached"
    assert snapshot.tickers() == {"AAPL"}


async def test_unexpected_error_without_cache_simulates(provider, gateway):
    provider.fetch_rankings.side_effect = ValueError("boom")

    snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "simulated"
    assert _all_quotes(snapshot)


async def test_cache_failure_is_treated_as_miss(provider, gateway):
    with patch(
        "marketfeed.repositories.stock_cache_repo.StockCacheRepository.most_recent_timestamp",
        side_effect=OperationalError("SELECT", {}, Exception("db down")),
    ):
        snapshot = await gateway.fetch_snapshot()

    assert snapshot.freshness == "simulated"


async def test_same_bucket_snapshots_are_identical(provider):
    gateway = make_gateway(provider, TestSession, api_key="")

    first = await gateway.fetch_snapshot(force_refresh=True)
    second = await gateway.fetch_snapshot(force_refresh=True)

    assert first == second


async def test_persist_prunes_expired_rows(gateway):
    await _seed_cache([make_quote("OLD")], age=timedelta(hours=25))

    await gateway.fetch_snapshot()

    async with TestSession() as session:
        assert await StockCacheRepository(session).get_by_symbol("OLD") is None


# ---------------------------------------------------------------------------
# fetch_quote
# ---------------------------------------------------------------------------


async def test_quote_without_key_raises_configuration_error(provider):
    gateway = make_gateway(provider, TestSession, api_key="")

    with pytest.raises(ConfigurationError):
        await gateway.fetch_quote("AAPL")
    provider.fetch_quote.assert_not_awaited()


async def test_quote_remote_error_surfaces(gateway):
    with pytest.raises(RemoteError):
        await gateway.fetch_quote("AAPL")


async def test_quote_is_not_cached(provider, gateway):
    provider.fetch_quote.side_effect = None
    provider.fetch_quote.return_value = make_quote("AAPL", price=187.25)

    quote = await gateway.fetch_quote(" aapl ")

    assert quote.price == 187.25
    provider.fetch_quote.assert_awaited_once_with("AAPL", "test-key")
    assert await gateway.get_cached("AAPL") is None


async def test_quote_lookup_does_not_refresh_stale_cache(provider, gateway):
    await _seed_cache([make_quote("OLD1", change_percent=3.0)], age=timedelta(hours=2))
    provider.fetch_quote.side_effect = None
    provider.fetch_quote.return_value = make_quote("AAPL", change_percent=5.0)
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(gainers=[make_quote("NVDA", change_percent=4.0)])

    await gateway.fetch_quote("AAPL")
    snapshot = await gateway.fetch_snapshot()

    assert provider.fetch_rankings.await_count == 1
    assert snapshot.freshness == "live"
    assert [q.ticker for q in snapshot.gainers] == ["NVDA"]


async def test_check_connection(provider, gateway):
    provider.fetch_quote.side_effect = None
    provider.fetch_quote.return_value = make_quote("AAPL", price=187.25)

    assert await gateway.check_connection() == "Connected. AAPL: $187.25"


# ---------------------------------------------------------------------------
# fetch_company_overview
# ---------------------------------------------------------------------------


async def test_overview_prefers_remote(provider, gateway):
    remote = CompanyOverview(symbol="AAPL", name="Apple Inc", sector="TECHNOLOGY")
    provider.fetch_overview.side_effect = None
    provider.fetch_overview.return_value = remote

    assert await gateway.fetch_company_overview("AAPL") == remote


async def test_overview_falls_back_to_simulation(gateway):
    overview = await gateway.fetch_company_overview("AAPL")
    assert overview.name == "Apple Inc."
    assert overview.sector == "Technology"


async def test_overview_unknown_symbol_raises(gateway):
    with pytest.raises(SymbolNotFoundError):
        await gateway.fetch_company_overview("ZZZFAKE9")


# ---------------------------------------------------------------------------
# fetch_daily_series
# ---------------------------------------------------------------------------


async def test_series_uses_last_thirty_remote_closes(provider, gateway):
    df = make_daily_df(n_days=40, base_price=100.0)
    provider.fetch_daily_series.side_effect = None
    provider.fetch_daily_series.return_value = df

    series = await gateway.fetch_daily_series("AAPL")

    assert len(series) == SERIES_LENGTH
    assert series[-1].date == df.index[-1].date().isoformat()
    assert series[-1].price == round(df["close"].iloc[-1], 2)
    assert series[0].price == round(df["close"].iloc[-SERIES_LENGTH], 2)


async def test_series_with_few_closes_is_synthesized_near_last_close(provider, gateway):
    provider.fetch_daily_series.side_effect = None
    provider.fetch_daily_series.return_value = make_daily_df(n_days=10, base_price=500.0)

    series = await gateway.fetch_daily_series("ZZZFAKE9")

    assert len(series) == SERIES_LENGTH
    # Anchored at the last remote close (504.5), not the 100.0 default
    assert series[0].price > 400


async def test_series_fallback_without_key(provider):
    gateway = make_gateway(provider, TestSession, api_key="")

    series = await gateway.fetch_daily_series("ZZZFAKE9")

    assert len(series) == SERIES_LENGTH
    dates = [p.date for p in series]
    assert dates == sorted(set(dates))
    assert all(p.price > 0 for p in series)
    assert series[-1].date == (NOW.date() - timedelta(days=1)).isoformat()
    provider.fetch_daily_series.assert_not_awaited()


async def test_series_fallback_anchors_on_cached_price(gateway):
    await _seed_cache([make_quote("ZZZ", price=1000.0)], age=timedelta(minutes=1))

    series = await gateway.fetch_daily_series("ZZZ")

    assert series[0].price > 900


# ---------------------------------------------------------------------------
# Search and enrichment
# ---------------------------------------------------------------------------


async def test_search_blank_query(provider, gateway):
    assert await gateway.fetch_search("   ") == []
    provider.search_symbols.assert_not_awaited()


async def test_search_merges_cache_and_remote(provider, gateway):
    async with TestSession() as session:
        await StockCacheRepository(session).bulk_upsert(
            [make_quote("AAPL")], {"AAPL": "Apple Inc."}, to_epoch_ms(NOW),
        )
    provider.search_symbols.side_effect = None
    provider.search_symbols.return_value = [
        SymbolSearchResult(symbol="AAPL", name="Apple Inc"),
        SymbolSearchResult(symbol="APLE", name="Apple Hospitality REIT Inc"),
    ]

    results = await gateway.fetch_search("apple")

    assert [r.symbol for r in results] == ["AAPL", "APLE"]
    assert results[0].name == "Apple Inc."


async def test_search_remote_failure_returns_cached_hits(gateway):
    async with TestSession() as session:
        await StockCacheRepository(session).bulk_upsert(
            [make_quote("MSFT")], {"MSFT": "Microsoft Corp."}, to_epoch_ms(NOW),
        )

    results = await gateway.fetch_search("micro")

    assert [r.symbol for r in results] == ["MSFT"]


async def test_search_remote_failure_without_cached_hits_raises(gateway):
    with pytest.raises(RemoteError):
        await gateway.fetch_search("nothing")


async def test_enrich_company_names(provider, gateway):
    async with TestSession() as session:
        await StockCacheRepository(session).bulk_upsert(
            [make_quote("ABCD"), make_quote("WXYZ"), make_quote("AAPL")],
            {"AAPL": "Apple Inc."},
            to_epoch_ms(NOW),
        )

    async def overview(symbol, api_key):
        if symbol == "ABCD":
            return CompanyOverview(symbol="ABCD", name="Abcd Holdings")
        raise RemoteError("not found")

    provider.fetch_overview.side_effect = overview

    assert await gateway.enrich_company_names() == 1
    assert provider.fetch_overview.await_count == 2  # AAPL already has a name

    assert (await gateway.get_cached("ABCD")).name == "Abcd Holdings"
    assert (await gateway.get_cached("WXYZ")).name == "WXYZ"


async def test_enrich_without_key_is_noop(provider):
    gateway = make_gateway(provider, TestSession, api_key="")
    assert await gateway.enrich_company_names(["AAPL"]) == 0
    provider.fetch_overview.assert_not_awaited()


async def test_prune_cache(gateway):
    await _seed_cache([make_quote("OLD")], age=timedelta(days=2))
    await _seed_cache([make_quote("NEW")], age=timedelta(minutes=1))

    assert await gateway.prune_cache() == 1
    assert [s.symbol for s in await gateway.list_cached()] == ["NEW"]


# ---------------------------------------------------------------------------
# Tri-state streams
# ---------------------------------------------------------------------------


async def test_snapshot_stream_loading_then_success(gateway):
    items = await collect(gateway.get_snapshot())

    assert isinstance(items[0], Loading)
    assert isinstance(items[1], Success)
    assert items[1].value.freshness == "simulated"
    assert len(items) == 2


async def test_overview_stream_error(gateway):
    items = await collect(gateway.get_company_overview("ZZZFAKE9"))

    assert items == [Loading(), Error("Company data not found for ZZZFAKE9")]


async def test_quote_stream_error_without_key(provider):
    gateway = make_gateway(provider, TestSession, api_key="")

    items = await collect(gateway.get_single_quote("AAPL"))

    assert isinstance(items[-1], Error)
    assert "API key" in items[-1].message


async def test_series_and_search_streams(gateway):
    series = await collect(gateway.get_daily_series("AAPL"))
    search = await collect(gateway.search_stocks(""))

    assert isinstance(series[-1], Success) and len(series[-1].value) == SERIES_LENGTH
    assert search == [Loading(), Success([])]
