"""Shared fixtures for the credit screener test suite."""

from datetime import date, datetime, timedelta

import pytest

from credit_screener.models.market import (
    CalendarSnapshot,
    CompanyProfile,
    Fundamentals,
    QuoteSnapshot,
)
from credit_screener.models.option import OptionChainSnapshot, OptionContract
from credit_screener.models.types import OptionSide
from credit_screener.providers.static import StaticDataProvider

TODAY = date(2025, 1, 2)


def make_contract(
    strike: float,
    side: OptionSide = OptionSide.PUT,
    expiration: date | None = None,
    bid: float = 1.00,
    ask: float = 1.05,
    delta: float | None = -0.20,
    open_interest: int = 1000,
    volume: int = 50,
    implied_vol: float = 0.35,
    theta: float | None = -0.03,
    underlying: str = "AAPL",
) -> OptionContract:
    expiration = expiration or TODAY + timedelta(days=45)
    return OptionContract(
        symbol=f"{underlying}{expiration:%y%m%d}{side.value[0].upper()}{int(strike * 1000):08d}",
        underlying=underlying,
        side=side,
        expiration=expiration,
        strike=strike,
        bid=bid,
        ask=ask,
        open_interest=open_interest,
        volume=volume,
        implied_vol=implied_vol,
        delta=delta,
        theta=theta,
    )


def make_spread_chain(underlying: str = "AAPL", expiration: date | None = None) -> tuple:
    """Put and call contracts around a 100.00 underlying that resolve PCS and CCS spreads.

    PCS: short 90 put (delta -0.20, bid 1.00), long 84 put (ask 0.35).
    CCS: short 110 call (delta 0.20, bid 0.90), long 116 call (ask 0.25).
    """
    expiration = expiration or TODAY + timedelta(days=45)
    return (
        make_contract(90, OptionSide.PUT, expiration, bid=1.00, ask=1.02, delta=-0.20,
                      theta=-0.03, underlying=underlying),
        make_contract(84, OptionSide.PUT, expiration, bid=0.33, ask=0.35, delta=-0.09,
                      theta=-0.02, underlying=underlying),
        make_contract(110, OptionSide.CALL, expiration, bid=0.90, ask=0.92, delta=0.20,
                      theta=-0.03, underlying=underlying),
        make_contract(116, OptionSide.CALL, expiration, bid=0.23, ask=0.25, delta=0.08,
                      theta=-0.01, underlying=underlying),
    )


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def contract_factory():
    return make_contract


@pytest.fixture
def spread_chain():
    """One-expiration chain on AAPL at 45 DTE with resolvable PCS and CCS spreads."""
    return OptionChainSnapshot(
        underlying="AAPL",
        as_of=datetime(2025, 1, 2, 15, 30),
        contracts=make_spread_chain(),
    )


@pytest.fixture
def strong_fundamentals():
    """Large-cap, profitable, low-leverage fundamentals earning every credit."""
    return Fundamentals(
        symbol="AAPL",
        company_name="Apple Inc.",
        market_cap=3.0e12,
        sector="Technology",
        beta=1.2,
        net_margin=0.25,
        return_on_equity=1.5,
        debt_to_equity=1.5,
        current_ratio=1.1,
    )


@pytest.fixture
def static_provider(strong_fundamentals, spread_chain):
    """StaticDataProvider holding one fully-described US listing (AAPL at 100)."""
    return StaticDataProvider(
        fundamentals={"AAPL": strong_fundamentals},
        profiles={"AAPL": CompanyProfile(
            symbol="AAPL", company_name="Apple Inc.", country="US",
            exchange="NASDAQ", currency="USD", is_adr=False, sector="Technology",
        )},
        quotes={"AAPL": QuoteSnapshot(symbol="AAPL", price=100.0,
                                      avg_volume=50_000_000, volume=40_000_000)},
        chains={"AAPL": spread_chain},
        calendars={"AAPL": CalendarSnapshot(symbol="AAPL")},
    )


@pytest.fixture
def spread_chain_factory():
    return make_spread_chain
