"""Pluggable data providers for fundamentals, market data and calendars."""

from .alpaca import AlpacaClient
from .base import CalendarProvider, FundamentalsProvider, MarketDataProvider
from .calendar import FmpCalendarClient
from .fmp import FmpClient
from .static import StaticDataProvider

__all__ = [
    "FundamentalsProvider",
    "MarketDataProvider",
    "CalendarProvider",
    "FmpClient",
    "AlpacaClient",
    "FmpCalendarClient",
    "StaticDataProvider",
]
