"""Shared router dependencies: process-wide gateway, validator and watchlist service."""

from fastapi import Depends

from marketfeed.config import settings
from marketfeed.database import async_session
from marketfeed.services.market_gateway import MarketDataGateway
from marketfeed.services.market_providers import get_market_provider
from marketfeed.services.symbol_validator import SymbolValidator
from marketfeed.services.watchlist_service import WatchlistService

_gateway: MarketDataGateway | None = None


def get_gateway() -> MarketDataGateway:
    """Return the gateway singleton, building it on first use."""
    global _gateway
    if _gateway is None:
        _gateway = MarketDataGateway(
            get_market_provider(),
            async_session,
            api_key=settings.alpha_vantage_api_key,
            freshness_seconds=settings.cache_freshness_seconds,
            retention_seconds=settings.cache_retention_seconds,
            remote_timeout=settings.remote_timeout,
        )
    return _gateway


def reset_gateway() -> None:
    global _gateway
    _gateway = None


def get_validator(gateway: MarketDataGateway = Depends(get_gateway)) -> SymbolValidator:
    return SymbolValidator(gateway, timeout=settings.validation_timeout)


def get_watchlist_service(validator: SymbolValidator = Depends(get_validator)) -> WatchlistService:
    return WatchlistService(validator)
