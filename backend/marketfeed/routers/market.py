import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from marketfeed.exceptions import ConfigurationError, MarketDataError, RemoteError, SymbolNotFoundError
from marketfeed.routers.deps import get_gateway
from marketfeed.schemas.market import (
    CachedStockResponse,
    ChartPoint,
    CompanyOverview,
    ConnectionStatus,
    Quote,
    RankingSnapshot,
    SymbolSearchResult,
)
from marketfeed.services.market_gateway import MarketDataGateway
from marketfeed.services.results import Error, Loading, Success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/market", tags=["market"])


@router.get("/snapshot", response_model=RankingSnapshot, summary="Top gainers, losers and most active")
async def get_snapshot(
    refresh: bool = Query(False, description="Bypass the cache freshness window"),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Return the current market ranking snapshot.

    Data comes from the cache when it is younger than the freshness window,
    otherwise from the remote provider, otherwise from the simulation. The
    `freshness` field says which. This endpoint never returns an error.
    """
    return await gateway.fetch_snapshot(force_refresh=refresh)


async def _snapshot_event_generator(gateway: MarketDataGateway, refresh: bool):
    async for result in gateway.get_snapshot(force_refresh=refresh):
        if isinstance(result, Loading):
            yield "event: loading\ndata: {}\n\n"
        elif isinstance(result, Success):
            yield f"event: success\ndata: {result.value.model_dump_json()}\n\n"
        elif isinstance(result, Error):
            yield f"event: error\ndata: {json.dumps({'message': result.message})}\n\n"


@router.get(
    "/snapshot/stream",
    summary="SSE stream of one snapshot load",
    responses={200: {"content": {"text/event-stream": {}}, "description": "An `event: loading` marker followed by exactly one `event: success` (snapshot JSON) or `event: error`."}},
)
async def stream_snapshot(
    refresh: bool = Query(False),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Stream the loading state of a snapshot fetch as Server-Sent Events."""
    return StreamingResponse(
        _snapshot_event_generator(gateway, refresh),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/quotes/{symbol}", response_model=Quote, summary="Live quote for one symbol")
async def get_quote(symbol: str, gateway: MarketDataGateway = Depends(get_gateway)):
    """Fetch a live quote. There is no simulated fallback for single quotes."""
    try:
        return await gateway.fetch_quote(symbol)
    except ConfigurationError as exc:
        raise HTTPException(503, str(exc))
    except RemoteError as exc:
        raise HTTPException(502, str(exc))


@router.get("/overview/{symbol}", response_model=CompanyOverview, summary="Company fundamentals")
async def get_overview(symbol: str, gateway: MarketDataGateway = Depends(get_gateway)):
    try:
        return await gateway.fetch_company_overview(symbol)
    except SymbolNotFoundError as exc:
        raise HTTPException(404, str(exc))


@router.get("/series/{symbol}", response_model=list[ChartPoint], summary="30 daily closes")
async def get_series(symbol: str, gateway: MarketDataGateway = Depends(get_gateway)):
    """Return the last 30 daily closes, synthesized when the remote has too few."""
    return await gateway.fetch_daily_series(symbol)


@router.get("/search", response_model=list[SymbolSearchResult], summary="Search symbols")
async def search(
    q: str = Query(..., min_length=1, max_length=50),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Search cached stocks by symbol or name, then the remote symbol search."""
    try:
        return await gateway.fetch_search(q)
    except MarketDataError as exc:
        raise HTTPException(502, str(exc))


@router.get("/cache", response_model=list[CachedStockResponse], summary="List cached stocks")
async def list_cache(gateway: MarketDataGateway = Depends(get_gateway)):
    return await gateway.list_cached()


@router.get("/cache/{symbol}", response_model=CachedStockResponse, summary="Get one cached stock")
async def get_cached_stock(symbol: str, gateway: MarketDataGateway = Depends(get_gateway)):
    stock = await gateway.get_cached(symbol.strip().upper())
    if stock is None:
        raise HTTPException(404, f"{symbol.upper()} is not cached")
    return stock


@router.get("/connection", response_model=ConnectionStatus, summary="Probe the remote provider")
async def check_connection(gateway: MarketDataGateway = Depends(get_gateway)):
    """Report whether the configured API key can reach the remote provider."""
    try:
        message = await gateway.check_connection()
    except MarketDataError as exc:
        return ConnectionStatus(ok=False, message=str(exc))
    return ConnectionStatus(ok=True, message=message)
