"""Core data models for credit trade screening."""

from .candidates import (
    ExpirationCandidate,
    ExpirationRanked,
    LiquidityGateResult,
    ScoreBreakdown,
    StrikeCandidate,
    TradeCandidate,
)
from .market import CalendarSnapshot, Fundamentals, TrendMetrics, VolatilityMetrics
from .option import OptionChainSnapshot, OptionContract
from .qualify import DisqualifiedTicker, QualifiedCandidate, QualifyRequest, QualifyResponse
from .types import MarketRegime, OptionSide, RiskFlag, StrategyType
from .universe import TickerDecision, UniverseResult

__all__ = [
    "OptionContract",
    "OptionChainSnapshot",
    "Fundamentals",
    "CalendarSnapshot",
    "TrendMetrics",
    "VolatilityMetrics",
    "StrikeCandidate",
    "ExpirationCandidate",
    "ExpirationRanked",
    "ScoreBreakdown",
    "LiquidityGateResult",
    "TradeCandidate",
    "TickerDecision",
    "UniverseResult",
    "QualifyRequest",
    "QualifyResponse",
    "QualifiedCandidate",
    "DisqualifiedTicker",
    "StrategyType",
    "OptionSide",
    "MarketRegime",
    "RiskFlag",
]
