"""Alpha Vantage data fetching.

- client: HTTP transport for the ``/query`` endpoint
- parsing: JSON body → schema / DataFrame conversion
"""

from marketfeed.services.alphavantage.client import AlphaVantageClient
from marketfeed.services.alphavantage.parsing import (
    parse_daily_series,
    parse_global_quote,
    parse_overview,
    parse_rankings,
    parse_search,
)

__all__ = [
    "AlphaVantageClient",
    "parse_daily_series",
    "parse_global_quote",
    "parse_overview",
    "parse_rankings",
    "parse_search",
]
