"""Convert raw Alpha Vantage JSON bodies into schema objects."""

import logging
import math

import pandas as pd

from marketfeed.exceptions import RemoteError
from marketfeed.schemas.market import CompanyOverview, Quote, RankingPayload, SymbolSearchResult

logger = logging.getLogger(__name__)

# Column mapping for TIME_SERIES_DAILY bars
_DAILY_COLUMNS = {
    "1. open": "open",
    "2. high": "high",
    "3. low": "low",
    "4. close": "close",
    "5. volume": "volume",
}


def _safe_float(val: object, decimals: int = 2) -> float | None:
    """Parse an Alpha Vantage numeric string ("1,234.5", "-0.8%", "None") or None."""
    if val is None:
        return None
    if isinstance(val, str):
        val = val.strip().replace(",", "").replace("$", "").rstrip("%").lstrip("+")
        if val in ("", "None", "-", "N/A"):
            return None
    try:
        f = float(val)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return round(f, decimals)


def _safe_int(val: object) -> int | None:
    f = _safe_float(val, decimals=0)
    return int(f) if f is not None else None


def _parse_ranking_rows(rows: object, list_name: str) -> list[Quote]:
    if not isinstance(rows, list):
        return []

    quotes = []
    skipped: list[str] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        ticker = str(row.get("ticker", "")).strip().upper()
        price = _safe_float(row.get("price"))
        change = _safe_float(row.get("change_amount"))
        change_pct = _safe_float(row.get("change_percentage"))
        volume = _safe_int(row.get("volume"))
        if not ticker or price is None or change_pct is None or volume is None:
            skipped.append(ticker or "?")
            continue
        quotes.append(Quote(
            ticker=ticker,
            price=price,
            change_amount=change if change is not None else 0.0,
            change_percent=change_pct,
            volume=volume,
        ))

    if skipped:
        logger.warning("Skipped %d unparseable %s rows: %s", len(skipped), list_name, ", ".join(skipped[:10]))
    return quotes


def parse_rankings(body: dict) -> RankingPayload:
    return RankingPayload(
        gainers=_parse_ranking_rows(body.get("top_gainers"), "top_gainers"),
        losers=_parse_ranking_rows(body.get("top_losers"), "top_losers"),
        most_active=_parse_ranking_rows(body.get("most_actively_traded"), "most_actively_traded"),
        last_updated=str(body.get("last_updated", "")),
    )


def parse_global_quote(symbol: str, body: dict) -> Quote:
    data = body.get("Global Quote")
    if not isinstance(data, dict) or not data:
        raise RemoteError(f"Quote not found for {symbol}")

    price = _safe_float(data.get("05. price"))
    if price is None:
        raise RemoteError(f"Quote for {symbol} has no price")

    return Quote(
        ticker=str(data.get("01. symbol") or symbol).upper(),
        price=price,
        change_amount=_safe_float(data.get("09. change")) or 0.0,
        change_percent=_safe_float(data.get("10. change percent")) or 0.0,
        volume=_safe_int(data.get("06. volume")) or 0,
    )


def parse_overview(symbol: str, body: dict) -> CompanyOverview:
    """Parse an OVERVIEW body. Unknown symbols come back as ``{}``."""
    name = str(body.get("Name") or "").strip()
    if not body.get("Symbol") or not name:
        raise RemoteError(f"Company overview not found for {symbol}")

    dividend = _safe_float(body.get("DividendYield"), decimals=4)
    return CompanyOverview(
        symbol=str(body["Symbol"]).upper(),
        name=name,
        description=str(body.get("Description") or ""),
        sector=str(body.get("Sector") or ""),
        industry=str(body.get("Industry") or ""),
        market_cap=_safe_int(body.get("MarketCapitalization")),
        week_52_high=_safe_float(body.get("52WeekHigh")),
        week_52_low=_safe_float(body.get("52WeekLow")),
        pe_ratio=_safe_float(body.get("PERatio"), decimals=1),
        # Alpha Vantage reports a fraction (0.0055); expose percent like the simulation
        dividend_yield=round(dividend * 100, 2) if dividend is not None else None,
        eps=_safe_float(body.get("EPS")),
        revenue_per_share=_safe_float(body.get("RevenuePerShareTTM")),
    )


def parse_daily_series(symbol: str, body: dict) -> pd.DataFrame:
    """Return OHLCV bars indexed by date, oldest first."""
    series = body.get("Time Series (Daily)")
    if not isinstance(series, dict) or not series:
        raise RemoteError(f"No daily series for {symbol}")

    df = pd.DataFrame.from_dict(series, orient="index").rename(columns=_DAILY_COLUMNS)
    df.index = pd.to_datetime(df.index, errors="coerce")
    df = df[df.index.notna()]
    for col in _DAILY_COLUMNS.values():
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df.sort_index()


def parse_search(body: dict) -> list[SymbolSearchResult]:
    matches = body.get("bestMatches")
    if not isinstance(matches, list):
        return []
    results = []
    for item in matches:
        if not isinstance(item, dict) or not item.get("1. symbol"):
            continue
        results.append(SymbolSearchResult(
            symbol=str(item["1. symbol"]).upper(),
            name=str(item.get("2. name") or ""),
            type=str(item.get("3. type") or "Equity"),
            region=str(item.get("4. region") or "United States"),
            currency=str(item.get("8. currency") or "USD"),
        ))
    return results
