"""Tests for watchlist membership on top of the stock cache."""

import pytest

from marketfeed.exceptions import DuplicateSymbolError, SymbolNotFoundError, SymbolValidationError
from marketfeed.repositories import StockCacheRepository
from marketfeed.schemas.market import CompanyOverview
from marketfeed.services.market_gateway import to_epoch_ms
from marketfeed.services.symbol_validator import SymbolValidator
from marketfeed.services.watchlist_service import WatchlistService
from tests.helpers import NOW, make_payload, make_quote

pytestmark = pytest.mark.asyncio(loop_scope="function")


@pytest.fixture
def service(gateway):
    return WatchlistService(SymbolValidator(gateway))


async def test_add_symbol_from_snapshot(db, provider, service):
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(gainers=[make_quote("AAPL", price=190.0)])

    stock = await service.add(db, "aapl")

    assert stock.symbol == "AAPL"
    assert stock.in_watchlist
    assert stock.name == "Apple Inc."
    assert stock.price == 190.0


async def test_add_creates_placeholder_row_for_overview_symbol(db, provider, service):
    provider.fetch_overview.side_effect = None
    provider.fetch_overview.return_value = CompanyOverview(symbol="BRK.B", name="Berkshire Hathaway Inc")

    stock = await service.add(db, "BRK.B")

    assert stock.in_watchlist
    assert stock.name == "Berkshire Hathaway Inc"
    assert stock.price == 0.0
    assert stock.last_updated == to_epoch_ms(NOW)


async def test_add_duplicate_rejected(db, provider, service):
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(gainers=[make_quote("AAPL")])
    await service.add(db, "AAPL")

    with pytest.raises(DuplicateSymbolError):
        await service.add(db, "AAPL")


async def test_add_invalid_symbol_rejected(db, service):
    with pytest.raises(SymbolValidationError):
        await service.add(db, "ZZZFAKE9")

    assert await service.list(db) == []
    assert await StockCacheRepository(db).get_by_symbol("ZZZFAKE9") is None


async def test_add_reserved_symbol_rejected(db, service):
    with pytest.raises(SymbolValidationError) as exc_info:
        await service.add(db, "dummy")
    assert exc_info.value.reason == "Symbol is reserved"


async def test_remove(db, provider, service):
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(gainers=[make_quote("AAPL")])
    await service.add(db, "AAPL")

    await service.remove(db, "aapl")

    assert await service.list(db) == []
    # The cached market data stays
    assert await StockCacheRepository(db).get_by_symbol("AAPL") is not None


async def test_remove_unknown_symbol(db, service):
    with pytest.raises(SymbolNotFoundError):
        await service.remove(db, "NOPE")


async def test_list_is_ordered_by_symbol(db, provider, service):
    provider.fetch_rankings.side_effect = None
    provider.fetch_rankings.return_value = make_payload(
        gainers=[make_quote("MSFT"), make_quote("AAPL"), make_quote("KO")],
    )
    for symbol in ("MSFT", "KO", "AAPL"):
        await service.add(db, symbol)

    assert [s.symbol for s in await service.list(db)] == ["AAPL", "KO", "MSFT"]
