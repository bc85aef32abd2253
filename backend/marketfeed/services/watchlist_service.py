"""Watchlist membership, stored as a flag on cached stock rows."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from marketfeed.exceptions import DuplicateSymbolError, SymbolNotFoundError
from marketfeed.models import CachedStock
from marketfeed.repositories import StockCacheRepository
from marketfeed.services.market_gateway import to_epoch_ms
from marketfeed.services.simulation import company_name
from marketfeed.services.symbol_validator import SymbolValidator

logger = logging.getLogger(__name__)


class WatchlistService:
    def __init__(self, validator: SymbolValidator):
        self.validator = validator

    async def list(self, db: AsyncSession) -> list[CachedStock]:
        return await StockCacheRepository(db).list_watchlisted()

    async def add(self, db: AsyncSession, symbol: str) -> CachedStock:
        """Validate and watchlist ``symbol``.

        Raises DuplicateSymbolError or SymbolValidationError. A cache row is
        created for symbols that have never appeared in a snapshot.
        """
        repo = StockCacheRepository(db)
        symbol = symbol.strip().upper()

        existing = await repo.get_by_symbol(symbol)
        if existing and existing.in_watchlist:
            raise DuplicateSymbolError(symbol)

        validation = await self.validator.ensure_valid(symbol)
        name = validation.name or company_name(symbol)

        stock = existing or await repo.ensure_row(symbol, name, to_epoch_ms(self.validator.gateway.clock()))
        if stock.name == symbol and name != symbol:
            await repo.update_name(symbol, name)

        stock = await repo.set_watchlist_status(symbol, True)
        logger.info("Added %s to watchlist", symbol)
        return stock

    async def remove(self, db: AsyncSession, symbol: str) -> None:
        repo = StockCacheRepository(db)
        symbol = symbol.strip().upper()
        stock = await repo.get_by_symbol(symbol)
        if stock is None or not stock.in_watchlist:
            raise SymbolNotFoundError(symbol)
        await repo.set_watchlist_status(symbol, False)
        logger.info("Removed %s from watchlist", symbol)
