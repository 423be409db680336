"""Enumerations shared across the screening pipeline.

All enums are string-valued so they serialize as their code.
"""

from enum import Enum
from typing import Iterable, Tuple


class StrategyType(str, Enum):
    """Option-selling strategies the screener can underwrite."""

    CSP = "CSP"  # cash-secured put
    PCS = "PCS"  # put credit spread
    CCS = "CCS"  # call credit spread
    CC = "CC"    # covered call

    @property
    def side(self) -> "OptionSide":
        """Option side traded by the short leg."""
        if self in (StrategyType.CSP, StrategyType.PCS):
            return OptionSide.PUT
        return OptionSide.CALL

    @property
    def is_spread(self) -> bool:
        """True for defined-risk vertical spreads (two legs)."""
        return self in (StrategyType.PCS, StrategyType.CCS)


class OptionSide(str, Enum):
    PUT = "put"
    CALL = "call"


class MarketRegime(str, Enum):
    BULL = "BULL"
    NEUTRAL = "NEUTRAL"
    BEAR = "BEAR"


class IvRegime(str, Enum):
    EXPANDING = "EXPANDING"
    STABLE = "STABLE"
    CRUSHED = "CRUSHED"
    UNKNOWN = "UNKNOWN"

    @property
    def trend_label(self) -> str:
        """Lowercase trend word used on trade candidates."""
        if self is IvRegime.EXPANDING:
            return "expanding"
        if self is IvRegime.CRUSHED:
            return "crushing"
        return "stable"


class RiskFlag(str, Enum):
    """Risk tags attached to candidates and portfolios."""

    EARNINGS_WITHIN_TRADE = "RISK_EARNINGS_WITHIN_TRADE"
    MACRO_EVENT = "RISK_MACRO_EVENT"
    WIDE_SPREADS = "RISK_WIDE_SPREADS"
    LOW_OI = "RISK_LOW_OI"
    IV_SPIKE = "RISK_IV_SPIKE"
    TREND_CONFLICT = "RISK_TREND_CONFLICT"
    CORRELATED_EXPOSURE = "RISK_CORRELATED_EXPOSURE"
    SECTOR_CONCENTRATION = "RISK_SECTOR_CONCENTRATION"


class ScoreInterpretation(str, Enum):
    HIGH = "HIGH"
    ACCEPTABLE = "ACCEPTABLE"
    PASS = "PASS"


class UniverseSource(str, Enum):
    MANUAL = "MANUAL"
    RECOMMENDED = "RECOMMENDED"


class RecommendationProfile(str, Enum):
    SP500 = "SP500"
    NASDAQ = "NASDAQ"


class ReasonSeverity(str, Enum):
    EXCLUDE = "EXCLUDE"
    WARN = "WARN"


def dedupe_flags(*groups: Iterable[RiskFlag]) -> Tuple[RiskFlag, ...]:
    """Merge risk flag groups into one de-duplicated tuple.

    First occurrence wins, so the output order is deterministic.
    """
    seen: dict = {}
    for group in groups:
        for flag in group:
            seen.setdefault(RiskFlag(flag), None)
    return tuple(seen)
