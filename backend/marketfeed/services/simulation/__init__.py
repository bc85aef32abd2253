"""Deterministic market simulation.

- directory: immutable company reference table
- tuning: hand-tuned multiplier and probability tables
- engine: snapshot, company overview and daily series generation
"""

from marketfeed.services.simulation.directory import (
    COMPANY_DIRECTORY,
    CompanyDirectory,
    CompanyInfo,
    company_name,
)
from marketfeed.services.simulation.engine import (
    MarketSimulationEngine,
    bucket_start,
    market_sentiment,
    market_session,
    session_label,
)
from marketfeed.services.simulation.tuning import (
    DEFAULT_TUNING,
    NewsEffect,
    Sentiment,
    SimulationTuning,
)

__all__ = [
    # directory
    "COMPANY_DIRECTORY",
    "CompanyDirectory",
    "CompanyInfo",
    "company_name",
    # engine
    "MarketSimulationEngine",
    "bucket_start",
    "market_sentiment",
    "market_session",
    "session_label",
    # tuning
    "DEFAULT_TUNING",
    "NewsEffect",
    "Sentiment",
    "SimulationTuning",
]
