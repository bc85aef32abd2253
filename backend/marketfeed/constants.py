"""Shared constants for ticker admission, ranking sizes and name enrichment."""

import re

# Tickers accepted into a ranking snapshot (post-filter invariant).
SNAPSHOT_TICKER_RE = re.compile(r"^[A-Z0-9+\-]{1,5}$")

# Symbols a user may type when adding to the watchlist (before upper-casing).
USER_SYMBOL_RE = re.compile(r"^[A-Za-z0-9.\-+]{1,10}$")

# Placeholder / test values that must never be shown or persisted as tickers.
RESERVED_TICKERS: frozenset[str] = frozenset({
    "DARSHI", "INVALID", "TEST", "MOCK", "DUMMY",
    "SAMPLE", "EXAMPLE", "FAKE", "NULL", "UNDEFINED",
})

# Company names that mean "the provider knows nothing about this symbol".
PLACEHOLDER_NAMES: frozenset[str] = frozenset({"N/A", "NONE", "-"})

RANKING_SIZE = 8
SERIES_LENGTH = 30

# Number of names enriched per run when only the ticker is known.
ENRICH_BATCH_SIZE = 6


def is_company_name(name: str | None, symbol: str) -> bool:
    """True when ``name`` identifies a company rather than echoing the ticker or a placeholder."""
    if not name or not name.strip():
        return False
    cleaned = name.strip().upper()
    return cleaned != symbol.strip().upper() and cleaned not in PLACEHOLDER_NAMES
