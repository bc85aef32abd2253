"""Error hierarchy for the market data gateway.

The aggregate ranking path absorbs every one of these; narrower single-symbol
paths surface them to the caller.
"""


class MarketDataError(Exception):
    """Base class for errors a gateway caller may see."""


class ConfigurationError(MarketDataError):
    """No API key is configured for the remote provider."""


class RemoteError(MarketDataError):
    """The remote provider failed: transport error, non-2xx, bad body or rate limit."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CacheError(MarketDataError):
    """The cache store failed. Treated as a cache miss by the gateway."""


class SymbolNotFoundError(MarketDataError):
    """Neither the remote provider nor the company directory knows the symbol."""

    def __init__(self, symbol: str):
        super().__init__(f"Company data not found for {symbol}")
        self.symbol = symbol


class SymbolValidationError(MarketDataError):
    """A symbol was rejected for watchlist admission."""

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"Cannot add symbol '{symbol}': {reason}")
        self.symbol = symbol
        self.reason = reason


class DuplicateSymbolError(MarketDataError):
    """The symbol is already on the watchlist."""

    def __init__(self, symbol: str):
        super().__init__(f"{symbol} is already on the watchlist")
        self.symbol = symbol
