"""Market data provider registry: resolves a provider name to a singleton instance."""

from marketfeed.config import settings
from marketfeed.services.alphavantage import AlphaVantageClient
from marketfeed.services.market_providers.alphavantage import AlphaVantageProvider
from marketfeed.services.market_providers.base import MarketDataProvider

__all__ = ["MarketDataProvider", "init_market_provider", "get_market_provider", "close_market_provider"]


def _build_alphavantage() -> MarketDataProvider:
    return AlphaVantageProvider(AlphaVantageClient(
        base_url=settings.alpha_vantage_base_url,
        timeout=settings.remote_timeout,
    ))


_PROVIDERS = {
    "alphavantage": _build_alphavantage,
}

_instance: MarketDataProvider | None = None


def init_market_provider() -> None:
    """Instantiate the configured market data provider (called once at startup)."""
    global _instance
    name = settings.market_provider
    factory = _PROVIDERS.get(name)
    if factory is None:
        raise ValueError(
            f"Unknown market provider: {name!r}. Available: {list(_PROVIDERS)}"
        )
    _instance = factory()


def get_market_provider() -> MarketDataProvider:
    """Return the active market data provider singleton.

    Raises RuntimeError if init_market_provider() hasn't been called yet.
    """
    if _instance is None:
        raise RuntimeError(
            "Market provider not initialized, call init_market_provider() first"
        )
    return _instance


async def close_market_provider() -> None:
    global _instance
    if _instance is not None:
        await _instance.aclose()
        _instance = None
