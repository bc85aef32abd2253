"""Reference table of simulated companies.

Loaded once at import; the engine receives it by reference and never mutates
it.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class CompanyInfo:
    name: str
    min_price: float
    max_price: float
    sector: str
    volatility: float  # baseline daily volatility as a fraction of price
    is_tech: bool

    @property
    def mid_price(self) -> float:
        return round((self.min_price + self.max_price) / 2, 2)


CompanyDirectory = Mapping[str, CompanyInfo]

COMPANY_DIRECTORY: CompanyDirectory = MappingProxyType({
    # Technology (higher volatility)
    "AAPL": CompanyInfo("Apple Inc.", 150.0, 200.0, "Technology", 0.02, True),
    "MSFT": CompanyInfo("Microsoft Corp.", 300.0, 400.0, "Technology", 0.018, True),
    "GOOGL": CompanyInfo("Alphabet Inc.", 2500.0, 3200.0, "Technology", 0.025, True),
    "AMZN": CompanyInfo("Amazon.com Inc.", 3000.0, 3500.0, "Technology", 0.022, True),
    "TSLA": CompanyInfo("Tesla Inc.", 200.0, 300.0, "Automotive", 0.05, True),
    "NVDA": CompanyInfo("NVIDIA Corp.", 400.0, 900.0, "Technology", 0.035, True),
    "META": CompanyInfo("Meta Platforms", 300.0, 500.0, "Technology", 0.028, True),
    "NFLX": CompanyInfo("Netflix Inc.", 400.0, 600.0, "Technology", 0.025, True),
    "AMD": CompanyInfo("Advanced Micro", 90.0, 150.0, "Technology", 0.035, True),
    "CRM": CompanyInfo("Salesforce Inc.", 180.0, 250.0, "Technology", 0.03, True),
    "ORCL": CompanyInfo("Oracle Corp.", 90.0, 130.0, "Technology", 0.02, False),
    # Traditional (lower volatility)
    "JPM": CompanyInfo("JPMorgan Chase", 140.0, 180.0, "Financial", 0.015, False),
    "JNJ": CompanyInfo("Johnson & Johnson", 160.0, 180.0, "Healthcare", 0.012, False),
    "PG": CompanyInfo("Procter & Gamble", 140.0, 160.0, "Consumer Goods", 0.01, False),
    "KO": CompanyInfo("Coca-Cola Co.", 55.0, 65.0, "Consumer Goods", 0.008, False),
    "WMT": CompanyInfo("Walmart Inc.", 140.0, 160.0, "Retail", 0.012, False),
    "DIS": CompanyInfo("Walt Disney Co.", 90.0, 120.0, "Entertainment", 0.02, False),
    "MCD": CompanyInfo("McDonald's Corp.", 250.0, 300.0, "Consumer Goods", 0.015, False),
    "VZ": CompanyInfo("Verizon Communications", 35.0, 45.0, "Telecom", 0.012, False),
    # ETFs and heavily traded names
    "SPY": CompanyInfo("SPDR S&P 500", 400.0, 450.0, "ETF", 0.008, False),
    "QQQ": CompanyInfo("Invesco QQQ", 350.0, 400.0, "ETF", 0.012, True),
    "IWM": CompanyInfo("iShares Russell 2000", 180.0, 220.0, "ETF", 0.015, False),
    "INTC": CompanyInfo("Intel Corp.", 50.0, 70.0, "Technology", 0.02, False),
    # Meme / retail favourites (high volatility)
    "GME": CompanyInfo("GameStop Corp.", 15.0, 25.0, "Retail", 0.08, True),
    "AMC": CompanyInfo("AMC Entertainment", 3.0, 8.0, "Entertainment", 0.06, True),
    "PLTR": CompanyInfo("Palantir Tech", 15.0, 25.0, "Technology", 0.04, True),
    "BB": CompanyInfo("BlackBerry Ltd.", 4.0, 8.0, "Technology", 0.03, True),
    "RIVN": CompanyInfo("Rivian Automotive", 12.0, 25.0, "Automotive", 0.06, True),
    "LCID": CompanyInfo("Lucid Group Inc.", 5.0, 15.0, "Automotive", 0.07, True),
    # Energy, finance, industrials
    "XOM": CompanyInfo("Exxon Mobil", 95.0, 120.0, "Energy", 0.025, False),
    "BAC": CompanyInfo("Bank of America", 28.0, 40.0, "Financial", 0.018, False),
    "F": CompanyInfo("Ford Motor Co.", 10.0, 15.0, "Automotive", 0.03, False),
    "GE": CompanyInfo("General Electric", 90.0, 120.0, "Industrial", 0.025, False),
    "CVX": CompanyInfo("Chevron Corp.", 140.0, 180.0, "Energy", 0.02, False),
    "WFC": CompanyInfo("Wells Fargo", 35.0, 50.0, "Financial", 0.02, False),
})

# Names that dominate daily volume; the most-active list rotates through these.
MOST_ACTIVE_CANDIDATES: tuple[str, ...] = (
    "AAPL", "TSLA", "SPY", "QQQ", "MSFT", "AMZN", "NVDA",
    "META", "AMD", "GME", "GOOGL", "F", "BAC", "XOM",
)

SECTOR_INDUSTRIES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "Technology": ("Software", "Semiconductors", "Internet Services", "Computer Hardware"),
    "Financial": ("Banking", "Investment Services", "Insurance"),
    "Healthcare": ("Pharmaceuticals", "Medical Devices", "Biotechnology"),
    "Energy": ("Oil & Gas", "Renewable Energy", "Utilities"),
    "Automotive": ("Auto Manufacturing", "Electric Vehicles", "Auto Parts"),
})


def company_name(symbol: str) -> str:
    """Display name for a ticker, or the ticker itself when unknown."""
    info = COMPANY_DIRECTORY.get(symbol.upper())
    return info.name if info else symbol.upper()
