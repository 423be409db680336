"""Volatility quality scoring for premium selling.

Low implied volatility and unstable IV regimes shrink the volatility sub-score
through multiplicative penalties.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..models.market import VolatilityMetrics
from ..models.types import IvRegime, RiskFlag


class VolatilityScoreConfig:
    """Thresholds for IV level and IV change-rate classification."""

    def __init__(
        self,
        min_iv: float = 0.30,
        penalize_low_iv: bool = True,
        iv_spike_threshold: float = 0.20,
        iv_crush_threshold: float = -0.15,
    ):
        """Initialize volatility scoring configuration.

        Args:
            min_iv: IV floor as decimal (0.30 = 30%)
            penalize_low_iv: Use the harsh low-IV multiplier (0.4) instead of 0.7
            iv_spike_threshold: Change rate at or above which IV is EXPANDING
            iv_crush_threshold: Change rate at or below which IV is CRUSHED
        """
        self.min_iv = min_iv
        self.penalize_low_iv = penalize_low_iv
        self.iv_spike_threshold = iv_spike_threshold
        self.iv_crush_threshold = iv_crush_threshold

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "VolatilityScoreConfig":
        return cls(
            min_iv=config.get('min_iv', 0.30),
            penalize_low_iv=config.get('penalize_low_iv', True),
            iv_spike_threshold=config.get('iv_spike_threshold', 0.20),
            iv_crush_threshold=config.get('iv_crush_threshold', -0.15),
        )


@dataclass(frozen=True)
class VolatilityScoreResult:
    score_multiplier: float
    metrics: VolatilityMetrics
    risk_flags: Tuple[RiskFlag, ...] = field(default_factory=tuple)


def classify_iv_regime(
    iv_change_rate: float | None,
    config: VolatilityScoreConfig | None = None,
) -> IvRegime:
    """Classify IV regime from its rate of change; UNKNOWN without data."""
    config = config or VolatilityScoreConfig()
    if iv_change_rate is None:
        return IvRegime.UNKNOWN
    if iv_change_rate >= config.iv_spike_threshold:
        return IvRegime.EXPANDING
    if iv_change_rate <= config.iv_crush_threshold:
        return IvRegime.CRUSHED
    return IvRegime.STABLE


def score_volatility_quality(
    iv: float | None,
    iv_change_rate: float | None,
    config: VolatilityScoreConfig | None = None,
) -> VolatilityScoreResult:
    """Compute the volatility quality multiplier.

    Multipliers compound:
        - IV below floor: x0.4 (x0.7 when low IV is not penalized)
        - EXPANDING: x0.7 and RISK_IV_SPIKE
        - CRUSHED: x0.6

    Args:
        iv: Current implied volatility (decimal) or None
        iv_change_rate: Fractional IV change rate or None
        config: Thresholds (defaults if None)

    Returns:
        VolatilityScoreResult with multiplier, metrics and risk flags
    """
    config = config or VolatilityScoreConfig()
    regime = classify_iv_regime(iv_change_rate, config)
    flags: List[RiskFlag] = []

    multiplier = 1.0
    if iv is not None and iv < config.min_iv:
        multiplier = 0.4 if config.penalize_low_iv else 0.7

    if regime == IvRegime.EXPANDING:
        flags.append(RiskFlag.IV_SPIKE)
        multiplier *= 0.7
    elif regime == IvRegime.CRUSHED:
        multiplier *= 0.6

    return VolatilityScoreResult(
        score_multiplier=multiplier,
        metrics=VolatilityMetrics(iv=iv, iv_change_rate=iv_change_rate, iv_regime=regime),
        risk_flags=tuple(flags),
    )
