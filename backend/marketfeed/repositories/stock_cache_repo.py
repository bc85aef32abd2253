from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from marketfeed.models import CachedStock
from marketfeed.schemas.market import Quote

# Columns owned by the market-data writer; in_watchlist is never among them
_MARKET_FIELDS = ("price", "change", "change_percent", "volume", "last_updated")


class StockCacheRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(CachedStock)
        if dialect == "sqlite":
            return sqlite.insert(CachedStock)
        raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}")

    async def bulk_upsert(self, quotes: list[Quote], names: dict[str, str], updated_at: int) -> int:
        """Insert or refresh market fields for each quote. Returns row count.

        Duplicate tickers collapse to the last occurrence. On conflict only
        market fields change, so an enriched name and the watchlist flag
        survive.
        """
        by_ticker = {q.ticker: q for q in quotes}
        if not by_ticker:
            return 0

        rows = [
            {
                "symbol": q.ticker,
                "name": names.get(q.ticker, q.ticker),
                "price": q.price,
                "change": q.change_amount,
                "change_percent": q.change_percent,
                "volume": q.volume,
                "last_updated": updated_at,
                "in_watchlist": False,
            }
            for q in by_ticker.values()
        ]

        stmt = self._insert().values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["symbol"],
            set_={col: stmt.excluded[col] for col in _MARKET_FIELDS},
        )
        await self.db.execute(stmt)
        await self.db.commit()
        return len(rows)

    async def ensure_row(self, symbol: str, name: str, updated_at: int) -> CachedStock:
        """Return the row for ``symbol``, inserting an empty placeholder if missing."""
        stmt = self._insert().values(
            symbol=symbol, name=name, price=0.0, change=0.0, change_percent=0.0,
            volume=0, last_updated=updated_at, in_watchlist=False,
        ).on_conflict_do_nothing(index_elements=["symbol"])
        await self.db.execute(stmt)
        await self.db.commit()
        return await self.get_by_symbol(symbol)

    async def delete_older_than(self, cutoff: int) -> int:
        """Delete non-watchlisted rows last written before ``cutoff`` (epoch ms)."""
        result = await self.db.execute(
            delete(CachedStock).where(
                CachedStock.last_updated < cutoff,
                CachedStock.in_watchlist.is_(False),
            )
        )
        await self.db.commit()
        return result.rowcount or 0

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(CachedStock))
        return result.scalar_one()

    async def most_recent_timestamp(self) -> int | None:
        """Latest write time of a row carrying market data; placeholders are ignored."""
        result = await self.db.execute(
            select(func.max(CachedStock.last_updated)).where(CachedStock.price > 0)
        )
        return result.scalar()

    async def get_by_symbol(self, symbol: str) -> CachedStock | None:
        result = await self.db.execute(
            select(CachedStock).where(CachedStock.symbol == symbol.upper())
        )
        return result.scalar_one_or_none()

    async def get_all(self) -> list[CachedStock]:
        result = await self.db.execute(
            select(CachedStock).order_by(CachedStock.last_updated.desc(), CachedStock.symbol)
        )
        return list(result.scalars().all())

    async def get_many(self, symbols: list[str]) -> list[CachedStock]:
        if not symbols:
            return []
        result = await self.db.execute(
            select(CachedStock).where(CachedStock.symbol.in_([s.upper() for s in symbols]))
        )
        return list(result.scalars().all())

    async def search(self, query: str, limit: int = 10) -> list[CachedStock]:
        """Case-insensitive substring match on symbol or name, exact symbol first."""
        q = query.strip().lower()
        pattern = f"%{q}%"
        result = await self.db.execute(
            select(CachedStock)
            .where(
                or_(
                    func.lower(CachedStock.symbol).like(pattern),
                    func.lower(CachedStock.name).like(pattern),
                )
            )
            .order_by(
                func.lower(CachedStock.symbol) != q,
                ~func.lower(CachedStock.symbol).startswith(q),
                CachedStock.symbol,
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_watchlisted(self) -> list[CachedStock]:
        result = await self.db.execute(
            select(CachedStock)
            .where(CachedStock.in_watchlist.is_(True))
            .order_by(CachedStock.symbol)
        )
        return list(result.scalars().all())

    async def set_watchlist_status(self, symbol: str, in_watchlist: bool) -> CachedStock | None:
        stock = await self.get_by_symbol(symbol)
        if stock is None:
            return None
        stock.in_watchlist = in_watchlist
        await self.db.commit()
        await self.db.refresh(stock)
        return stock

    async def update_name(self, symbol: str, name: str) -> None:
        stock = await self.get_by_symbol(symbol)
        if stock is not None and stock.name != name:
            stock.name = name
            await self.db.commit()
