from marketfeed.repositories.stock_cache_repo import StockCacheRepository

__all__ = ["StockCacheRepository"]
