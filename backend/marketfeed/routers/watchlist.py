from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from marketfeed.database import get_db
from marketfeed.exceptions import DuplicateSymbolError, SymbolNotFoundError, SymbolValidationError
from marketfeed.routers.deps import get_validator, get_watchlist_service
from marketfeed.schemas.market import CachedStockResponse, SymbolValidation, WatchlistAddRequest
from marketfeed.services.symbol_validator import SymbolValidator
from marketfeed.services.watchlist_service import WatchlistService

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])


@router.get("", response_model=list[CachedStockResponse], summary="List watchlisted stocks")
async def list_watchlist(
    db: AsyncSession = Depends(get_db),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """Return watchlisted stocks ordered alphabetically by symbol."""
    return await service.list(db)


@router.get("/validate/{symbol}", response_model=SymbolValidation, summary="Check a symbol without adding it")
async def validate_symbol(symbol: str, validator: SymbolValidator = Depends(get_validator)):
    """Run the two-stage existence check. Rejections are reported, not raised."""
    return await validator.validate(symbol)


@router.post("", response_model=CachedStockResponse, status_code=201, summary="Add a symbol to the watchlist")
async def add_to_watchlist(
    data: WatchlistAddRequest,
    db: AsyncSession = Depends(get_db),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """Validate the symbol (fail-closed) and add it to the watchlist.

    Returns 422 when validation rejects the symbol and 409 when it is already
    watchlisted.
    """
    try:
        return await service.add(db, data.symbol)
    except DuplicateSymbolError as exc:
        raise HTTPException(409, str(exc))
    except SymbolValidationError as exc:
        raise HTTPException(422, str(exc))


@router.delete("/{symbol}", status_code=204, summary="Remove a symbol from the watchlist")
async def remove_from_watchlist(
    symbol: str,
    db: AsyncSession = Depends(get_db),
    service: WatchlistService = Depends(get_watchlist_service),
):
    try:
        await service.remove(db, symbol)
    except SymbolNotFoundError:
        raise HTTPException(404, f"{symbol.upper()} is not on the watchlist")
    return Response(status_code=204)
