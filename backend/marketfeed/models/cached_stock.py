from sqlalchemy import BigInteger, Boolean, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from marketfeed.database import Base


class CachedStock(Base):
    __tablename__ = "cached_stocks"

    symbol: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), default="")
    price: Mapped[float] = mapped_column(Float, default=0.0)
    change: Mapped[float] = mapped_column(Float, default=0.0)
    change_percent: Mapped[float] = mapped_column(Float, default=0.0)
    volume: Mapped[int] = mapped_column(BigInteger, default=0)
    # Epoch milliseconds of the last market-data write for this row
    last_updated: Mapped[int] = mapped_column(BigInteger, index=True)
    in_watchlist: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
