"""In-memory provider serving fundamentals, market data and calendars.

Backs offline runs from CSV inputs and the test suite. Implements all three
provider interfaces.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List

from ..models.market import (
    CalendarSnapshot,
    CompanyProfile,
    Fundamentals,
    QuoteSnapshot,
    StockQuote,
    StockTrade,
)
from ..models.option import OptionChainSnapshot
from ..models.types import RecommendationProfile
from ..utils.error_handling import ProviderError


@dataclass
class StaticDataProvider:
    """Provider whose answers are looked up in plain dictionaries keyed by symbol.

    Unknown symbols yield the "no data" answer of each method: empty
    fundamentals, no profile or quote, an empty chain, an empty calendar.
    Latest quote and trade raise ProviderError when absent, like a broker
    returning 404.
    """

    fundamentals: Dict[str, Fundamentals] = field(default_factory=dict)
    profiles: Dict[str, CompanyProfile] = field(default_factory=dict)
    quotes: Dict[str, QuoteSnapshot] = field(default_factory=dict)
    chains: Dict[str, OptionChainSnapshot] = field(default_factory=dict)
    calendars: Dict[str, CalendarSnapshot] = field(default_factory=dict)
    price_histories: Dict[str, List[float]] = field(default_factory=dict)
    constituents: Dict[RecommendationProfile, List[str]] = field(default_factory=dict)
    stock_quotes: Dict[str, StockQuote] = field(default_factory=dict)
    trades: Dict[str, StockTrade] = field(default_factory=dict)

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        symbol = symbol.upper()
        return self.fundamentals.get(symbol, Fundamentals(symbol=symbol))

    def get_company_profile(self, symbol: str) -> CompanyProfile | None:
        return self.profiles.get(symbol.upper())

    def get_quote_snapshot(self, symbol: str) -> QuoteSnapshot | None:
        return self.quotes.get(symbol.upper())

    def get_index_constituents(self, profile: RecommendationProfile) -> List[str]:
        if profile not in self.constituents:
            raise ProviderError(f"No constituents for {profile.value}")
        return list(self.constituents[profile])

    def get_price_history(self, symbol: str, days: int = 260) -> List[float]:
        return list(self.price_histories.get(symbol.upper(), []))[-days:]

    def get_option_chain_snapshot(self, underlying: str) -> OptionChainSnapshot:
        underlying = underlying.upper()
        chain = self.chains.get(underlying)
        if chain is None:
            return OptionChainSnapshot(underlying=underlying, as_of=datetime.now(timezone.utc))
        return chain

    def get_latest_quote(self, symbol: str) -> StockQuote:
        try:
            return self.stock_quotes[symbol.upper()]
        except KeyError:
            raise ProviderError(f"No quote for {symbol}", status_code=404) from None

    def get_latest_trade(self, symbol: str) -> StockTrade:
        try:
            return self.trades[symbol.upper()]
        except KeyError:
            raise ProviderError(f"No trade for {symbol}", status_code=404) from None

    def get_calendar_snapshot(self, symbol: str) -> CalendarSnapshot:
        symbol = symbol.upper()
        return self.calendars.get(symbol, CalendarSnapshot(symbol=symbol))
