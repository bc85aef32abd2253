"""Deterministic market simulation.

Every public method is a pure function of its arguments: the engine holds only
references to the immutable company directory and tuning tables, and each
call creates its own ``numpy.random.Generator`` which is passed explicitly to
every helper. Calls are therefore safe from any number of threads.
"""

import math
import zlib
from datetime import date, datetime, time, timedelta

import numpy as np

from marketfeed.constants import RANKING_SIZE, SERIES_LENGTH
from marketfeed.schemas.market import ChartPoint, CompanyOverview, Quote, RankingSnapshot
from marketfeed.services.simulation.directory import (
    COMPANY_DIRECTORY,
    MOST_ACTIVE_CANDIDATES,
    SECTOR_INDUSTRIES,
    CompanyDirectory,
    CompanyInfo,
)
from marketfeed.services.simulation.tuning import (
    DEFAULT_TUNING,
    NewsEffect,
    Sentiment,
    SimulationTuning,
)

BUCKET_MINUTES = 3
_BUCKET_MS = BUCKET_MINUTES * 60 * 1000

# Candidates priced per list before sorting and truncating to RANKING_SIZE
_CANDIDATES_PER_LIST = 10


def bucket_start(now: datetime) -> datetime:
    """Truncate ``now`` to the start of its 3-minute bucket."""
    return now.replace(minute=now.minute - now.minute % BUCKET_MINUTES, second=0, microsecond=0)


def snapshot_seed(bucket: datetime) -> int:
    day_of_year = bucket.timetuple().tm_yday
    micro = bucket.hour * 60 + bucket.minute // BUCKET_MINUTES
    intraday = int(bucket.timestamp() * 1000) // _BUCKET_MS
    return day_of_year + micro + intraday


def symbol_seed(symbol: str) -> int:
    """Stable across processes, unlike ``hash()``."""
    return zlib.crc32(symbol.upper().encode("utf-8"))


def market_sentiment(day_of_year: int, hour: int, minute: int) -> Sentiment:
    if not 9 <= hour <= 16:
        return Sentiment.AFTER_HOURS
    if hour == 9 and minute < 45:
        return Sentiment.VOLATILE if day_of_year % 3 == 0 else Sentiment.BULLISH
    if hour == 12:
        return Sentiment.NEUTRAL
    if hour == 15:
        return Sentiment.VOLATILE

    weekday_pattern = day_of_year % 7
    if weekday_pattern in (0, 6):
        return Sentiment.WEEKEND
    if weekday_pattern == 1:
        return Sentiment.BULLISH
    if weekday_pattern == 5:
        return Sentiment.VOLATILE
    return Sentiment.BEARISH if day_of_year % 3 == 0 else Sentiment.BULLISH


def market_session(now: datetime) -> str:
    if 9 <= now.hour <= 16:
        return "open"
    if now.weekday() >= 5:
        return "weekend"
    return "after-hours"


def session_label(now: datetime) -> str:
    stamp = now.strftime("%Y-%m-%d %H:%M:%S")
    session = market_session(now)
    if session == "open":
        return f"Market Open - {stamp} EST"
    if session == "weekend":
        return f"Weekend - Last Updated {stamp} EST"
    return f"After Hours - {stamp} EST"


def _rotate(pool: list[str], offset: int) -> list[str]:
    if not pool:
        return []
    offset %= len(pool)
    return pool[offset:] + pool[:offset]


def _uniform(rng: np.random.Generator, base: float, span: float) -> float:
    return base + float(rng.random()) * span


class MarketSimulationEngine:
    def __init__(
        self,
        directory: CompanyDirectory = COMPANY_DIRECTORY,
        tuning: SimulationTuning = DEFAULT_TUNING,
    ):
        self.directory = directory
        self.tuning = tuning

    # ── Snapshot ──────────────────────────────────────────────────────

    def generate_snapshot(self, now: datetime) -> RankingSnapshot:
        """Build a ranking snapshot for the 3-minute bucket containing ``now``.

        Two calls within the same bucket return identical snapshots.
        """
        bucket = bucket_start(now)
        day_of_year = bucket.timetuple().tm_yday
        hour, minute = bucket.hour, bucket.minute

        rng = np.random.default_rng(snapshot_seed(bucket))
        sentiment = market_sentiment(day_of_year, hour, minute)
        news = self.breaking_news(rng, hour)

        return RankingSnapshot(
            gainers=self._gainers(rng, sentiment, news, hour, minute),
            losers=self._losers(rng, sentiment, news, hour, minute),
            most_active=self._most_active(rng, sentiment, hour, minute),
            freshness="simulated",
            market_session=market_session(bucket),
            last_updated=session_label(bucket),
        )

    def breaking_news(self, rng: np.random.Generator, hour: int) -> NewsEffect:
        draw = float(rng.random())
        for band in self.tuning.news_bands:
            if band.matches(hour, draw):
                return band.effect
        return NewsEffect.NONE

    def _gainers(self, rng, sentiment: Sentiment, news: NewsEffect, hour: int, minute: int) -> list[Quote]:
        if news == NewsEffect.EARNINGS_BEAT:
            pool = [s for s, info in self.directory.items() if info.is_tech]
        elif news == NewsEffect.TECH_BREAKTHROUGH:
            pool = [s for s, info in self.directory.items() if info.sector == "Technology"]
        else:
            pool = [
                s for s, info in self.directory.items()
                if info.is_tech or sentiment == Sentiment.BULLISH
            ]

        quotes = []
        for symbol in _rotate(pool, hour * 4 + minute // 15)[:_CANDIDATES_PER_LIST]:
            info = self.directory[symbol]
            base_price = self._intraday_price(rng, info, hour, minute)
            multiplier = self._gain_multiplier(info, sentiment, news)
            change_pct = _uniform(rng, 0.5, 4.0) * multiplier * self._momentum(rng, hour, minute)
            volume = self._volume(rng, info, sentiment, hour, minute)
            quotes.append(_make_quote(symbol, base_price, change_pct, volume))

        quotes.sort(key=lambda q: q.change_percent, reverse=True)
        return quotes[:RANKING_SIZE]

    def _losers(self, rng, sentiment: Sentiment, news: NewsEffect, hour: int, minute: int) -> list[Quote]:
        if news == NewsEffect.SECTOR_ROTATION:
            pool = [s for s, info in self.directory.items() if not info.is_tech]
        else:
            pool = [
                s for s, info in self.directory.items()
                if not info.is_tech or sentiment == Sentiment.BEARISH
            ]

        quotes = []
        for symbol in _rotate(pool, hour * 3 + minute // 20)[:_CANDIDATES_PER_LIST]:
            info = self.directory[symbol]
            base_price = self._intraday_price(rng, info, hour, minute)
            multiplier = self._loss_multiplier(info, sentiment, news)
            change_pct = -_uniform(rng, 0.3, 3.5) * multiplier * self._momentum(rng, hour, minute)
            volume = self._volume(rng, info, sentiment, hour, minute)
            quotes.append(_make_quote(symbol, base_price, change_pct, volume))

        quotes.sort(key=lambda q: q.change_percent)
        return quotes[:RANKING_SIZE]

    def _most_active(self, rng, sentiment: Sentiment, hour: int, minute: int) -> list[Quote]:
        pool = [s for s in MOST_ACTIVE_CANDIDATES if s in self.directory]
        # Gainers are more likely around midday, losers around midnight
        time_bias = math.sin((hour * 60 + minute) * math.pi / 720)

        quotes = []
        for symbol in _rotate(pool, hour * 2 + minute // 30)[:_CANDIDATES_PER_LIST]:
            info = self.directory[symbol]
            base_price = self._intraday_price(rng, info, hour, minute)
            if float(rng.random()) + time_bias * 0.3 > 0.5:
                change_pct = _uniform(rng, 0.2, 2.5) * self._momentum(rng, hour, minute)
            else:
                change_pct = -_uniform(rng, 0.2, 2.0) * self._momentum(rng, hour, minute)
            volume = self._active_volume(rng, info, hour)
            quotes.append(_make_quote(symbol, base_price, change_pct, volume))

        quotes.sort(key=lambda q: q.volume, reverse=True)
        return quotes[:RANKING_SIZE]

    # ── Per-symbol helpers ────────────────────────────────────────────

    def _intraday_price(self, rng, info: CompanyInfo, hour: int, minute: int) -> float:
        day_progress = (hour * 60 + minute) / 1440.0
        open_price = _uniform(rng, info.min_price, info.max_price - info.min_price)
        factor = self.tuning.hour_volatility.get(hour, self.tuning.default_hour_volatility)

        swing = math.sin(day_progress * math.pi * 2) * info.volatility * factor * open_price
        noise = (float(rng.random()) - 0.5) * info.volatility * open_price * 0.5
        return open_price + swing + noise

    def _gain_multiplier(self, info: CompanyInfo, sentiment: Sentiment, news: NewsEffect) -> float:
        if news == NewsEffect.EARNINGS_BEAT and info.is_tech:
            return self.tuning.earnings_beat_tech_gain
        if news == NewsEffect.TECH_BREAKTHROUGH and info.sector == "Technology":
            return self.tuning.tech_breakthrough_gain
        return self.tuning.gain_by_sentiment.get(sentiment, 1.0)

    def _loss_multiplier(self, info: CompanyInfo, sentiment: Sentiment, news: NewsEffect) -> float:
        if news == NewsEffect.SECTOR_ROTATION and not info.is_tech:
            return self.tuning.sector_rotation_loss
        return self.tuning.loss_by_sentiment.get(sentiment, 1.0)

    def _momentum(self, rng, hour: int, minute: int) -> float:
        minute_of_day = hour * 60 + minute
        pattern = self.tuning.default_momentum
        for upper, momentum in self.tuning.momentum_by_minute:
            if minute_of_day < upper:
                pattern = momentum
                break
        return pattern * _uniform(rng, 0.8, 0.4)

    def _volume(self, rng, info: CompanyInfo, sentiment: Sentiment, hour: int, minute: int) -> int:
        t = self.tuning
        base = _base_volume(info, t.named_volume, t.etf_volume, t.tech_volume, t.default_volume)
        time_mult = _uniform(rng, *t.volume_by_hour.get(hour, t.default_volume_by_hour))
        sentiment_mult = _uniform(rng, *t.volume_by_sentiment.get(sentiment, t.default_volume_by_sentiment))
        micro = 1.0 + math.sin(minute * math.pi / 30) * 0.1
        return max(1, int(base * time_mult * sentiment_mult * micro))

    def _active_volume(self, rng, info: CompanyInfo, hour: int) -> int:
        t = self.tuning
        base = _base_volume(
            info, t.active_named_volume, t.active_etf_volume,
            t.active_default_volume, t.active_default_volume,
        )
        time_mult = _uniform(rng, *t.active_volume_by_hour.get(hour, t.default_active_volume_by_hour))
        return max(1, int(base * time_mult))

    # ── Company overview ──────────────────────────────────────────────

    def generate_company_overview(self, symbol: str) -> CompanyOverview | None:
        """Synthesize fundamentals for a directory company.

        Returns None when the symbol is not in the directory.
        """
        symbol = symbol.upper()
        info = self.directory.get(symbol)
        if info is None:
            return None

        rng = np.random.default_rng(symbol_seed(symbol))
        price = _uniform(rng, info.min_price, info.max_price - info.min_price)
        market_cap = int(price * _uniform(rng, 500_000_000, 2_000_000_000))
        week_52_high = round(info.max_price * _uniform(rng, 0.95, 0.1), 2)
        week_52_low = round(info.min_price * _uniform(rng, 0.9, 0.1), 2)
        pe_ratio = round(_uniform(rng, 15, 25), 1)
        dividend_draw = float(rng.random())
        eps = round(_uniform(rng, 2, 8), 2)
        revenue_per_share = round(_uniform(rng, 10, 50), 2)

        industries = SECTOR_INDUSTRIES.get(info.sector)
        industry = str(rng.choice(industries)) if industries else info.sector

        return CompanyOverview(
            symbol=symbol,
            name=info.name,
            description=_describe(info),
            sector=info.sector,
            industry=industry,
            market_cap=market_cap,
            week_52_high=week_52_high,
            week_52_low=week_52_low,
            pe_ratio=pe_ratio,
            dividend_yield=0.0 if info.is_tech else round(dividend_draw * 3, 2),
            eps=eps,
            revenue_per_share=revenue_per_share,
        )

    # ── Daily series ──────────────────────────────────────────────────

    def generate_daily_series(self, symbol: str, base_price: float, today: date) -> list[ChartPoint]:
        """Random walk of SERIES_LENGTH daily closes ending the day before ``today``.

        Seeded by symbol and day, so the same day regenerates the same walk.
        """
        rng = np.random.default_rng([symbol_seed(symbol), today.toordinal()])
        start = today - timedelta(days=SERIES_LENGTH)

        points = []
        price = base_price
        for i in range(SERIES_LENGTH):
            # ±2% per day keeps the walk strictly positive
            price *= 1 + (float(rng.random()) - 0.5) * 0.04
            day = start + timedelta(days=i)
            points.append(ChartPoint(
                date=day.isoformat(),
                price=round(price, 2),
                timestamp=int(datetime.combine(day, time.min).timestamp() * 1000),
            ))
        return points


def _base_volume(
    info: CompanyInfo,
    named: tuple[tuple[str, int], ...],
    etf: int,
    tech: int,
    default: int,
) -> int:
    for fragment, volume in named:
        if fragment in info.name:
            return volume
    if info.sector == "ETF":
        return etf
    if info.is_tech:
        return tech
    return default


def _make_quote(symbol: str, base_price: float, change_pct: float, volume: int) -> Quote:
    change_amount = base_price * change_pct / 100
    return Quote(
        ticker=symbol,
        price=round(base_price + change_amount, 2),
        change_amount=round(change_amount, 2),
        change_percent=round(change_pct, 2),
        volume=volume,
    )


def _describe(info: CompanyInfo) -> str:
    if "Apple" in info.name:
        return ("Apple Inc. designs, manufactures, and markets smartphones, personal computers, "
                "tablets, wearables, and accessories worldwide.")
    if "Tesla" in info.name:
        return ("Tesla, Inc. designs, develops, manufactures, leases, and sells electric vehicles, "
                "and energy generation and storage systems.")
    if "Microsoft" in info.name:
        return ("Microsoft Corporation develops, licenses, and supports software, services, "
                "devices, and solutions worldwide.")
    if "Amazon" in info.name:
        return ("Amazon.com, Inc. engages in the retail sale of consumer products and "
                "subscriptions through online and physical stores.")
    if info.sector == "ETF":
        return "Exchange-traded fund that tracks the performance of selected market indices."
    return (f"{info.name} operates in the {info.sector.lower()} sector, providing various "
            "products and services to customers worldwide.")
