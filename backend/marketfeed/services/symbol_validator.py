"""Two-stage existence check for user-entered ticker symbols.

Format and reserved-word checks run locally. A symbol then passes if it
appears in a freshly fetched snapshot, or failing that, if a company overview
with a real name can be found. Anything ambiguous is rejected.
"""

import asyncio
import logging

from marketfeed.constants import RESERVED_TICKERS, USER_SYMBOL_RE, is_company_name
from marketfeed.exceptions import SymbolValidationError
from marketfeed.schemas.market import SymbolValidation
from marketfeed.services.market_gateway import MarketDataGateway
from marketfeed.services.results import Success, terminal

logger = logging.getLogger(__name__)


class SymbolValidator:
    def __init__(self, gateway: MarketDataGateway, timeout: float = 10.0):
        self.gateway = gateway
        self.timeout = timeout

    async def validate(self, symbol: str) -> SymbolValidation:
        raw = symbol.strip()
        if not USER_SYMBOL_RE.match(raw):
            return _reject(raw, "Invalid symbol format")

        ticker = raw.upper()
        if ticker in RESERVED_TICKERS:
            return _reject(ticker, "Symbol is reserved")

        try:
            result = await asyncio.wait_for(
                terminal(self.gateway.get_snapshot(force_refresh=True)), timeout=self.timeout,
            )
            if isinstance(result, Success) and ticker in result.value.tickers():
                logger.info("Symbol %s found in market snapshot", ticker)
                return SymbolValidation(symbol=ticker, valid=True, source="snapshot")
        except asyncio.TimeoutError:
            logger.warning("Snapshot check for %s timed out", ticker)
        except Exception:
            logger.exception("Snapshot check for %s failed", ticker)

        try:
            result = await asyncio.wait_for(
                terminal(self.gateway.get_company_overview(ticker)), timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Overview check for %s timed out", ticker)
            return _reject(ticker, "Validation timed out")
        except Exception:
            logger.exception("Overview check for %s failed", ticker)
            return _reject(ticker, "Validation failed")

        if not isinstance(result, Success):
            return _reject(ticker, "Symbol not found")

        overview = result.value
        if not overview.symbol.strip() or not is_company_name(overview.name, ticker):
            logger.info("Overview for %s has no usable company name (%r)", ticker, overview.name)
            return _reject(ticker, "Symbol not found")

        return SymbolValidation(symbol=ticker, valid=True, source="overview", name=overview.name)

    async def ensure_valid(self, symbol: str) -> SymbolValidation:
        """Validate ``symbol``, raising SymbolValidationError when it is rejected."""
        validation = await self.validate(symbol)
        if not validation.valid:
            raise SymbolValidationError(validation.symbol, validation.reason or "Symbol not found")
        return validation


def _reject(symbol: str, reason: str) -> SymbolValidation:
    logger.info("Rejected symbol %r: %s", symbol, reason)
    return SymbolValidation(symbol=symbol, valid=False, reason=reason)
