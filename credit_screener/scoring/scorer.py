"""Composite confidence scoring for trade candidates.

Implements a transparent weighted sum of five components against
configurable ceilings (fundamentals 30, liquidity 20, volatility 20,
trend 20, event risk 10).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Tuple

from ..models.candidates import LiquidityGateResult, ScoreBreakdown
from ..models.market import Fundamentals, VolatilityMetrics
from ..models.types import RiskFlag, ScoreInterpretation, dedupe_flags
from ..utils.error_handling import ConfigurationError, clamp, round_half_up
from .volatility import VolatilityScoreConfig, score_volatility_quality

logger = logging.getLogger("credit_screener.scoring")

HIGH_THRESHOLD = 80
ACCEPTABLE_THRESHOLD = 65
EVENT_FLAG_POINTS = 2


class ScoringConfig:
    """Configuration for component weights (points out of 100)."""

    def __init__(
        self,
        fundamentals_weight: float = 30,
        liquidity_weight: float = 20,
        volatility_weight: float = 20,
        trend_weight: float = 20,
        event_weight: float = 10,
        large_cap_threshold: float = 10_000_000_000,
    ):
        """Initialize scoring configuration.

        Args:
            fundamentals_weight: Ceiling for the fundamentals component
            liquidity_weight: Ceiling for the liquidity component
            volatility_weight: Ceiling for the volatility component
            trend_weight: Ceiling for the trend component
            event_weight: Ceiling for the event-risk component
            large_cap_threshold: Market cap earning the large-cap credit

        Raises:
            ConfigurationError: If weights sum above 100
        """
        self.fundamentals_weight = fundamentals_weight
        self.liquidity_weight = liquidity_weight
        self.volatility_weight = volatility_weight
        self.trend_weight = trend_weight
        self.event_weight = event_weight
        self.large_cap_threshold = large_cap_threshold

        total_weight = (fundamentals_weight + liquidity_weight + volatility_weight
                        + trend_weight + event_weight)
        if total_weight > 100:
            raise ConfigurationError(f"Score weights sum to {total_weight:g}, above 100")
        if total_weight < 100:
            logger.warning("Score weights sum to %g, not 100", total_weight)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ScoringConfig":
        """Create ScoringConfig from dictionary (e.g., from YAML)."""
        weights = config.get('weights', {})
        return cls(
            fundamentals_weight=weights.get('fundamentals', 30),
            liquidity_weight=weights.get('liquidity', 20),
            volatility_weight=weights.get('volatility', 20),
            trend_weight=weights.get('trend', 20),
            event_weight=weights.get('event_risk', 10),
            large_cap_threshold=config.get('large_cap_threshold', 10_000_000_000),
        )


@dataclass(frozen=True)
class ScoreInput:
    fundamentals: Fundamentals | None = None
    liquidity_gate: LiquidityGateResult | None = None
    implied_vol: float | None = None
    iv_change_rate: float | None = None
    trend_score: float | None = None
    event_risk_flags: Tuple[RiskFlag, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ScoreResult:
    total: int
    breakdown: ScoreBreakdown
    risk_flags: Tuple[RiskFlag, ...]
    interpretation: ScoreInterpretation
    volatility: VolatilityMetrics


def score_fundamentals(fundamentals: Fundamentals | None, weight: float,
                       large_cap_threshold: float = 10_000_000_000) -> float:
    """Accumulate discrete fundamentals credits, scaled to weight."""
    if fundamentals is None:
        return 0.0

    credits = 0.0
    if fundamentals.market_cap is not None and fundamentals.market_cap >= large_cap_threshold:
        credits += 0.3
    if fundamentals.return_on_equity is not None and fundamentals.return_on_equity > 0:
        credits += 0.2
    if fundamentals.net_margin is not None and fundamentals.net_margin > 0:
        credits += 0.2
    if fundamentals.debt_to_equity is not None and fundamentals.debt_to_equity < 2:
        credits += 0.2
    if fundamentals.current_ratio is not None and fundamentals.current_ratio > 1:
        credits += 0.1

    return clamp(credits * weight, 0, weight)


def score_liquidity(liquidity_gate: LiquidityGateResult | None, weight: float) -> float:
    """Full weight if the gate passed, 20% if it failed, 50% if not evaluated."""
    if liquidity_gate is None:
        return weight * 0.5
    return weight if liquidity_gate.passed else weight * 0.2


def score_trend(trend_score: float | None, weight: float) -> float:
    if trend_score is None:
        return weight * 0.5
    return clamp(trend_score) * weight


def score_event_flags(risk_flags: Iterable[RiskFlag], weight: float) -> float:
    """Weight minus two points per active flag, floored at 0."""
    count = len(dedupe_flags(risk_flags))
    return clamp(weight - count * EVENT_FLAG_POINTS, 0, weight)


def interpret_score(total: int) -> ScoreInterpretation:
    """Map a total score onto the HIGH / ACCEPTABLE / PASS tiers."""
    if total >= HIGH_THRESHOLD:
        return ScoreInterpretation.HIGH
    if total >= ACCEPTABLE_THRESHOLD:
        return ScoreInterpretation.ACCEPTABLE
    return ScoreInterpretation.PASS


def score_candidate(
    score_input: ScoreInput,
    config: ScoringConfig | None = None,
    volatility_config: VolatilityScoreConfig | None = None,
) -> ScoreResult:
    """Compute the 0-100 confidence score for one candidate.

    Args:
        score_input: Upstream signals for the candidate
        config: Component weights (defaults if None)
        volatility_config: IV thresholds (defaults if None)

    Returns:
        ScoreResult whose total equals the sum of the rounded components

    Design:
        - Each component clamped to its ceiling, then rounded
        - Risk flags out = event flags plus volatility flags, de-duplicated
    """
    config = config or ScoringConfig()

    fundamentals = score_fundamentals(score_input.fundamentals, config.fundamentals_weight,
                                      config.large_cap_threshold)
    liquidity = score_liquidity(score_input.liquidity_gate, config.liquidity_weight)

    vol_quality = score_volatility_quality(score_input.implied_vol, score_input.iv_change_rate,
                                           volatility_config)
    volatility = clamp(config.volatility_weight * vol_quality.score_multiplier,
                       0, config.volatility_weight)

    trend = score_trend(score_input.trend_score, config.trend_weight)
    event = score_event_flags(score_input.event_risk_flags, config.event_weight)

    breakdown = ScoreBreakdown.from_parts(
        fundamentals=round_half_up(fundamentals),
        liquidity=round_half_up(liquidity),
        volatility=round_half_up(volatility),
        trend=round_half_up(trend),
        event_risk=round_half_up(event),
    )

    logger.debug(
        "Score %d (F=%d L=%d V=%d T=%d E=%d)",
        breakdown.total, breakdown.fundamentals, breakdown.liquidity,
        breakdown.volatility, breakdown.trend, breakdown.event_risk,
    )

    return ScoreResult(
        total=breakdown.total,
        breakdown=breakdown,
        risk_flags=dedupe_flags(score_input.event_risk_flags, vol_quality.risk_flags),
        interpretation=interpret_score(breakdown.total),
        volatility=vol_quality.metrics,
    )
