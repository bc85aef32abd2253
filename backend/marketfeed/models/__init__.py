from marketfeed.models.cached_stock import CachedStock  # noqa: F401
