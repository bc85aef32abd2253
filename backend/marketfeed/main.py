import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI

from marketfeed.config import settings
from marketfeed.database import engine
from marketfeed.routers import market, watchlist
from marketfeed.routers.deps import get_gateway, reset_gateway
from marketfeed.services.market_providers import close_market_provider, init_market_provider

logger = logging.getLogger(__name__)
scheduler = AsyncIOScheduler()


async def scheduled_cache_prune():
    """Background job: drop cached stocks past the retention ceiling."""
    try:
        deleted = await get_gateway().prune_cache()
        if deleted:
            logger.info(f"Pruned {deleted} expired cached stocks")
    except Exception:
        logger.exception("Scheduled cache prune failed")


async def scheduled_name_enrichment():
    """Background job: replace ticker-only cached names with company names."""
    try:
        updated = await get_gateway().enrich_company_names()
        if updated:
            logger.info(f"Enriched {updated} company names")
    except Exception:
        logger.exception("Scheduled name enrichment failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level.upper())
    init_market_provider()

    if not settings.alpha_vantage_api_key:
        logger.warning("ALPHA_VANTAGE_API_KEY is not set; market data will be simulated")

    if settings.cache_prune_interval_minutes > 0:
        scheduler.add_job(
            scheduled_cache_prune,
            IntervalTrigger(minutes=settings.cache_prune_interval_minutes),
            id="cache_prune",
        )
    if settings.name_enrichment_interval_minutes > 0 and settings.alpha_vantage_api_key:
        scheduler.add_job(
            scheduled_name_enrichment,
            IntervalTrigger(minutes=settings.name_enrichment_interval_minutes),
            id="name_enrichment",
        )
    if scheduler.get_jobs():
        scheduler.start()
        logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    await close_market_provider()
    reset_gateway()
    await engine.dispose()


app = FastAPI(
    title="Marketfeed",
    summary="Stock market dashboard backend with live, cached and simulated market data.",
    description=(
        "Marketfeed serves top gainers, top losers and most-active rankings, single-stock "
        "quotes, company fundamentals and 30-day price history.\n\n"
        "**Key concepts:**\n"
        "- Data is fetched from Alpha Vantage when an API key is configured and cached in "
        "the database for 5 minutes; cached rows are purged after 24 hours.\n"
        "- When the remote provider is unavailable, rate limited or unconfigured, rankings "
        "fall back to a deterministic simulation that changes every 3 minutes. Every "
        "snapshot reports its `freshness` (live, cached or simulated).\n"
        "- Watchlist additions are validated against live or simulated market data and "
        "rejected when existence cannot be confirmed.\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "market",
            "description": "Ranking snapshots (REST and SSE), quotes, company overviews, daily series, symbol search and cache inspection.",
        },
        {
            "name": "watchlist",
            "description": "Validated watchlist membership backed by the stock cache.",
        },
        {
            "name": "system",
            "description": "Health checks and operational endpoints.",
        },
    ],
)

app.include_router(market.router)
app.include_router(watchlist.router)


@app.get("/api/health", summary="Health check", tags=["system"])
async def health():
    """Return `{\"status\": \"ok\"}` when the service is running."""
    return {"status": "ok"}
