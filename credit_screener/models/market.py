"""Market, fundamentals, calendar and trend data models.

These are the values the pipeline receives from pluggable data providers.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Tuple

from .types import IvRegime


@dataclass(frozen=True)
class Fundamentals:
    """Slowly-changing company fundamentals used for holdability checks.

    Any metric the provider cannot supply is None.
    """

    symbol: str
    company_name: str | None = None
    market_cap: float | None = None
    sector: str | None = None
    industry: str | None = None
    beta: float | None = None
    pe_ratio: float | None = None
    gross_margin: float | None = None
    operating_margin: float | None = None
    net_margin: float | None = None
    return_on_equity: float | None = None
    return_on_assets: float | None = None
    debt_to_equity: float | None = None
    current_ratio: float | None = None
    quick_ratio: float | None = None


@dataclass(frozen=True)
class CompanyProfile:
    """Listing metadata for a ticker."""

    symbol: str
    company_name: str | None = None
    country: str | None = None
    exchange: str | None = None
    currency: str | None = None
    is_adr: bool | None = None
    sector: str | None = None


@dataclass(frozen=True)
class QuoteSnapshot:
    """Delayed quote summary: last price and volume statistics."""

    symbol: str
    price: float | None = None
    avg_volume: float | None = None
    volume: float | None = None


@dataclass(frozen=True)
class StockQuote:
    """Latest NBBO-style stock quote from the broker data feed."""

    symbol: str
    bid_price: float
    ask_price: float
    bid_size: float
    ask_size: float
    timestamp: datetime

    @property
    def mid(self) -> float | None:
        """Mid price, or None if either side is missing."""
        if self.bid_price <= 0 or self.ask_price <= 0:
            return None
        return (self.bid_price + self.ask_price) / 2.0


@dataclass(frozen=True)
class StockTrade:
    """Latest stock trade print."""

    symbol: str
    price: float
    size: float
    timestamp: datetime


@dataclass(frozen=True)
class MacroEvent:
    """Scheduled macro release (CPI print or FOMC decision)."""

    type: Literal["CPI", "FOMC"]
    date: date | None
    label: str


@dataclass(frozen=True)
class EarningsInfo:
    earnings_date: date | None = None
    days_to_earnings: int | None = None


@dataclass(frozen=True)
class CalendarSnapshot:
    """Next earnings and upcoming macro events for one symbol."""

    symbol: str
    earnings: EarningsInfo = field(default_factory=EarningsInfo)
    macro_events: Tuple[MacroEvent, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TrendMetrics:
    """Price relative to its 50/100/200-day moving averages.

    distance_from_200dma_pct is in percent units (12.0 = 12% above the 200DMA).
    """

    price: float
    dma50: float
    dma100: float
    dma200: float
    distance_from_200dma_pct: float

    @classmethod
    def neutral(cls, price: float) -> "TrendMetrics":
        """Flat trend used when no price history is available."""
        return cls(price=price, dma50=price, dma100=price, dma200=price,
                   distance_from_200dma_pct=0.0)


@dataclass(frozen=True)
class VolatilityMetrics:
    iv: float | None
    iv_change_rate: float | None
    iv_regime: IvRegime
