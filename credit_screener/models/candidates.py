"""Candidate data models produced by the strike search, ranking and scoring stages."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Tuple

from ..utils.error_handling import round_half_up
from .types import MarketRegime, OptionSide, RiskFlag, ScoreInterpretation, StrategyType


CONTRACT_MULTIPLIER = 100


class StrikeReasonCode(str, Enum):
    NO_TRADE = "NO_TRADE"
    NO_VALID_SHORT_STRIKE = "NO_VALID_SHORT_STRIKE"
    NO_VALID_LONG_STRIKE = "NO_VALID_LONG_STRIKE"
    INSUFFICIENT_CREDIT = "INSUFFICIENT_CREDIT"
    POOR_CREDIT_TO_WIDTH = "POOR_CREDIT_TO_WIDTH"


@dataclass(frozen=True)
class StrikeFinderReason:
    code: StrikeReasonCode
    message: str


@dataclass(frozen=True)
class StrikeSearchDiagnostic:
    """Funnel counts from a short-strike search, kept so failures can be explained."""

    side_contracts: int = 0
    otm_matches: int = 0
    delta_matches: int = 0
    liquidity_matches: int = 0
    survivors: int = 0

    def summary(self, otm_band: Tuple[float, float], delta_band: Tuple[float, float]) -> str:
        otm_low, otm_high = (round_half_up(bound * 100) for bound in otm_band)
        return (
            f"Side contracts: {self.side_contracts}, "
            f"OTM({otm_low}-{otm_high}%): {self.otm_matches}, "
            f"Delta({delta_band[0]}-{delta_band[1]}): {self.delta_matches}, "
            f"Liquidity: {self.liquidity_matches}."
        )


@dataclass(frozen=True)
class StrikeCandidate:
    """Resolved (or rejected) strike selection for one strategy and expiration.

    A candidate with any reasons is invalid and must not be traded.
    Invariant: credit >= 0 and max_loss >= 0.
    """

    strategy: StrategyType
    short_strike: float
    credit: float
    max_loss: float
    breakeven: float
    theta_per_day: float
    pop: float
    short_delta: float | None
    long_strike: float | None = None
    reasons: Tuple[StrikeFinderReason, ...] = field(default_factory=tuple)
    expiration: date | None = None
    short_implied_vol: float | None = None
    diagnostic: StrikeSearchDiagnostic | None = None

    def __post_init__(self) -> None:
        if self.credit < 0:
            raise ValueError(f"Credit must be non-negative, got {self.credit}")
        if self.max_loss < 0:
            raise ValueError(f"Max loss must be non-negative, got {self.max_loss}")

    @property
    def is_valid(self) -> bool:
        return not self.reasons

    @property
    def side(self) -> OptionSide:
        return self.strategy.side

    @property
    def width(self) -> float:
        """Spread width in points (0 for single-leg strategies)."""
        if self.long_strike is None:
            return 0.0
        return abs(self.short_strike - self.long_strike)

    @property
    def reason_codes(self) -> Tuple[StrikeReasonCode, ...]:
        return tuple(reason.code for reason in self.reasons)

    def __repr__(self) -> str:
        legs = f"{self.short_strike:g}"
        if self.long_strike is not None:
            legs += f"/{self.long_strike:g}"
        status = "OK" if self.is_valid else ",".join(c.value for c in self.reason_codes)
        return (f"StrikeCandidate({self.strategy.value} {legs} "
                f"Credit=${self.credit:.2f} MaxLoss=${self.max_loss:.2f} {status})")


@dataclass(frozen=True)
class ExpirationCandidate:
    """Strike-resolved summary of one expiration for one strategy."""

    expiration: date
    dte: int
    theta_per_day: float
    credit: float
    max_loss: float
    strategy: StrategyType
    risk_flags: Tuple[RiskFlag, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExpirationRanked(ExpirationCandidate):
    score: float = 0.0


@dataclass(frozen=True)
class ScoreBreakdown:
    """Integer sub-scores against the 30/20/20/20/10 component ceilings.

    Invariant: total == sum of the five parts and 0 <= total <= 100.
    """

    fundamentals: int
    liquidity: int
    volatility: int
    trend: int
    event_risk: int
    total: int

    def __post_init__(self) -> None:
        parts = (self.fundamentals + self.liquidity + self.volatility
                 + self.trend + self.event_risk)
        if self.total != parts:
            raise ValueError(f"Score total {self.total} does not equal component sum {parts}")
        if not 0 <= self.total <= 100:
            raise ValueError(f"Score total {self.total} outside [0, 100]")

    @classmethod
    def from_parts(cls, fundamentals: int, liquidity: int, volatility: int,
                   trend: int, event_risk: int) -> "ScoreBreakdown":
        """Build a breakdown whose total is clamped to 100.

        Rounding each component half-up can push the sum past 100 when
        weights are fractional; the overflow comes off the largest part.
        """
        parts = {
            'fundamentals': fundamentals,
            'liquidity': liquidity,
            'volatility': volatility,
            'trend': trend,
            'event_risk': event_risk,
        }
        overflow = sum(parts.values()) - 100
        if overflow > 0:
            largest = max(parts, key=parts.get)
            parts[largest] -= overflow
        fundamentals, liquidity, volatility, trend, event_risk = parts.values()

        return cls(
            fundamentals=fundamentals,
            liquidity=liquidity,
            volatility=volatility,
            trend=trend,
            event_risk=event_risk,
            total=fundamentals + liquidity + volatility + trend + event_risk,
        )


class LiquidityReasonCode(str, Enum):
    LOW_STOCK_LIQUIDITY = "DISQUALIFIED_LOW_STOCK_LIQUIDITY"
    WIDE_OPTIONS_SPREAD = "DISQUALIFIED_WIDE_OPTIONS_SPREAD"
    LOW_OPEN_INTEREST = "DISQUALIFIED_LOW_OPEN_INTEREST"


@dataclass(frozen=True)
class LiquidityDisqualification:
    code: LiquidityReasonCode
    message: str


@dataclass(frozen=True)
class LiquidityDiagnostics:
    avg_daily_volume: float | None = None
    evaluated_strike: float | None = None
    evaluated_spread_pct: float | None = None
    evaluated_open_interest: int | None = None


@dataclass(frozen=True)
class LiquidityGateResult:
    """Outcome of the liquidity gate. passed is True iff there are no reasons."""

    reasons: Tuple[LiquidityDisqualification, ...]
    diagnostics: LiquidityDiagnostics = field(default_factory=LiquidityDiagnostics)

    @property
    def passed(self) -> bool:
        return len(self.reasons) == 0

    @property
    def reason_codes(self) -> Tuple[LiquidityReasonCode, ...]:
        return tuple(reason.code for reason in self.reasons)


@dataclass(frozen=True)
class TradeCandidate:
    """Fully resolved, scored and explained trade for one ticker/strategy/expiration."""

    id: str
    ticker: str
    strategy: StrategyType
    expiration: date
    dte: int
    short_strike: float
    long_strike: float | None
    credit: float
    max_loss: float
    breakeven: float
    pop: float
    theta_per_day: float
    short_delta: float
    iv: float
    iv_trend: str
    stock_regime: MarketRegime
    risk_flags: Tuple[RiskFlag, ...]
    score: ScoreBreakdown
    interpretation: ScoreInterpretation
    why: Tuple[str, ...] = field(default_factory=tuple)

    @staticmethod
    def make_id(ticker: str, strategy: StrategyType, expiration: date) -> str:
        return f"{ticker}-{strategy.value}-{expiration.isoformat()}"

    @property
    def required_collateral(self) -> float:
        """Capital reserved for one contract, in dollars."""
        return self.max_loss * CONTRACT_MULTIPLIER

    def __repr__(self) -> str:
        legs = f"{self.short_strike:g}"
        if self.long_strike is not None:
            legs += f"/{self.long_strike:g}"
        return (f"TradeCandidate({self.ticker} {self.strategy.value} {legs} "
                f"{self.expiration.isoformat()} Score={self.score.total})")
