"""Tunable constants for the market simulation.

These values are hand-tuned to look plausible in a demo; none of them models
a real market. Pass a modified ``SimulationTuning`` to the engine to change
behaviour without touching the algorithm.
"""

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


class Sentiment(str, enum.Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"
    VOLATILE = "volatile"
    WEEKEND = "weekend"
    AFTER_HOURS = "after_hours"


class NewsEffect(str, enum.Enum):
    NONE = "none"
    EARNINGS_BEAT = "earnings_beat"
    FED_ANNOUNCEMENT = "fed_announcement"
    TECH_BREAKTHROUGH = "tech_breakthrough"
    SECTOR_ROTATION = "sector_rotation"


@dataclass(frozen=True)
class NewsBand:
    """A news effect fires when the hour is in ``hours`` and the draw is below ``threshold``.

    ``hours=None`` means the band applies at any hour.
    """

    effect: NewsEffect
    threshold: float
    hours: tuple[int, int] | None = None

    def matches(self, hour: int, draw: float) -> bool:
        if self.hours is not None and not self.hours[0] <= hour <= self.hours[1]:
            return False
        return draw < self.threshold


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class SimulationTuning:
    # Checked in order; the first matching band wins.
    news_bands: tuple[NewsBand, ...] = (
        NewsBand(NewsEffect.EARNINGS_BEAT, 0.10, (9, 10)),
        NewsBand(NewsEffect.FED_ANNOUNCEMENT, 0.05, (14, 15)),
        NewsBand(NewsEffect.TECH_BREAKTHROUGH, 0.03, (11, 12)),
        NewsBand(NewsEffect.SECTOR_ROTATION, 0.02),
    )

    earnings_beat_tech_gain: float = 2.5
    tech_breakthrough_gain: float = 2.0
    sector_rotation_loss: float = 1.8
    gain_by_sentiment: Mapping[Sentiment, float] = field(default_factory=lambda: _frozen({
        Sentiment.BULLISH: 1.5,
        Sentiment.VOLATILE: 2.0,
        Sentiment.WEEKEND: 0.3,
    }))
    loss_by_sentiment: Mapping[Sentiment, float] = field(default_factory=lambda: _frozen({
        Sentiment.BEARISH: 1.5,
        Sentiment.VOLATILE: 2.0,
        Sentiment.WEEKEND: 0.3,
    }))

    # Intraday price swing scale by hour of day; other hours use the default.
    hour_volatility: Mapping[int, float] = field(default_factory=lambda: _frozen({
        9: 1.5, 10: 1.2, 11: 1.2, 12: 0.8, 13: 0.8, 14: 1.3, 15: 1.3, 16: 1.4,
    }))
    default_hour_volatility: float = 0.5

    # (minute-of-day upper bound, momentum); the first bound above the minute wins.
    momentum_by_minute: tuple[tuple[int, float], ...] = (
        (600, 0.7),
        (630, 1.3),
        (720, 1.1),
        (780, 0.9),
        (840, 0.8),
        (900, 1.2),
        (960, 1.4),
    )
    default_momentum: float = 0.6

    # Baseline volumes: (name fragment, volume) checked before sector rules.
    named_volume: tuple[tuple[str, int], ...] = (
        ("Apple", 45_000_000),
        ("Tesla", 25_000_000),
        ("Microsoft", 30_000_000),
        ("SPDR", 80_000_000),
    )
    etf_volume: int = 60_000_000
    tech_volume: int = 20_000_000
    default_volume: int = 15_000_000

    # Hour of day → (base, random span) volume multiplier.
    volume_by_hour: Mapping[int, tuple[float, float]] = field(default_factory=lambda: _frozen({
        9: (2.5, 0.5), 10: (1.5, 0.5), 11: (1.5, 0.5), 12: (0.6, 0.3), 13: (0.6, 0.3),
        14: (1.3, 0.4), 15: (1.3, 0.4), 16: (2.0, 0.5),
    }))
    default_volume_by_hour: tuple[float, float] = (0.3, 0.2)
    volume_by_sentiment: Mapping[Sentiment, tuple[float, float]] = field(default_factory=lambda: _frozen({
        Sentiment.VOLATILE: (1.8, 0.7),
        Sentiment.BULLISH: (1.3, 0.5),
        Sentiment.BEARISH: (1.3, 0.5),
        Sentiment.WEEKEND: (0.2, 0.2),
    }))
    default_volume_by_sentiment: tuple[float, float] = (0.9, 0.3)

    # Most-active list uses its own, heavier volume tables.
    active_named_volume: tuple[tuple[str, int], ...] = (
        ("Apple", 85_000_000),
        ("Tesla", 55_000_000),
        ("SPDR", 150_000_000),
    )
    active_etf_volume: int = 120_000_000
    active_default_volume: int = 45_000_000
    active_volume_by_hour: Mapping[int, tuple[float, float]] = field(default_factory=lambda: _frozen({
        9: (3.0, 1.0), 10: (2.0, 0.8), 11: (2.0, 0.8), 15: (2.5, 0.7), 16: (2.5, 0.7),
    }))
    default_active_volume_by_hour: tuple[float, float] = (1.2, 0.8)


DEFAULT_TUNING = SimulationTuning()
