"""Trend regime and trend-safety scoring from moving-average alignment."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

import numpy as np

from ..models.market import TrendMetrics
from ..models.types import MarketRegime, RiskFlag
from ..utils.error_handling import clamp

logger = logging.getLogger("credit_screener.trend")

BULL_THRESHOLD = 1.03
BEAR_THRESHOLD = 0.97


class TrendScoreConfig:
    """Weights for the trend-safety blend."""

    def __init__(
        self,
        dma_align_weight: float = 0.6,
        distance_weight: float = 0.4,
        conflict_penalty: float = 0.2,
    ):
        """Initialize trend scoring configuration.

        Args:
            dma_align_weight: Weight for moving-average alignment component
            distance_weight: Weight for distance-from-200DMA component
            conflict_penalty: Score deduction when stock and market regimes disagree
        """
        self.dma_align_weight = dma_align_weight
        self.distance_weight = distance_weight
        self.conflict_penalty = conflict_penalty

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "TrendScoreConfig":
        return cls(
            dma_align_weight=config.get('dma_align_weight', 0.6),
            distance_weight=config.get('distance_weight', 0.4),
            conflict_penalty=config.get('conflict_penalty', 0.2),
        )


@dataclass(frozen=True)
class TrendScoreResult:
    score: float
    regime: MarketRegime
    risk_flags: Tuple[RiskFlag, ...] = field(default_factory=tuple)


def derive_regime(metrics: TrendMetrics) -> MarketRegime:
    """Classify regime from price versus the 200-day average (±3% band)."""
    if metrics.price > metrics.dma200 * BULL_THRESHOLD:
        return MarketRegime.BULL
    if metrics.price < metrics.dma200 * BEAR_THRESHOLD:
        return MarketRegime.BEAR
    return MarketRegime.NEUTRAL


def dma_alignment_score(metrics: TrendMetrics) -> float:
    """0.5 for 50DMA >= 100DMA plus 0.5 for 100DMA >= 200DMA."""
    score = 0.0
    if metrics.dma50 >= metrics.dma100:
        score += 0.5
    if metrics.dma100 >= metrics.dma200:
        score += 0.5
    return score


def distance_score(distance_pct: float) -> float:
    """Step function of percent distance from the 200-day average."""
    if distance_pct >= 15:
        return 1.0
    if distance_pct >= 5:
        return 0.7
    if distance_pct >= -5:
        return 0.5
    if distance_pct >= -15:
        return 0.3
    return 0.1


def score_trend_safety(
    metrics: TrendMetrics,
    market_regime: MarketRegime,
    config: TrendScoreConfig | None = None,
) -> TrendScoreResult:
    """Score how safe the stock's trend is for premium selling.

    Args:
        metrics: Stock trend metrics
        market_regime: Regime of the broad market benchmark
        config: Blend weights (defaults if None)

    Returns:
        TrendScoreResult with score in [0, 1], the stock regime, and
        RISK_TREND_CONFLICT when the stock disagrees with the market
    """
    config = config or TrendScoreConfig()
    stock_regime = derive_regime(metrics)

    combined = clamp(
        dma_alignment_score(metrics) * config.dma_align_weight
        + distance_score(metrics.distance_from_200dma_pct) * config.distance_weight
    )

    flags: Tuple[RiskFlag, ...] = ()
    if stock_regime != market_regime:
        flags = (RiskFlag.TREND_CONFLICT,)
        combined = clamp(combined - config.conflict_penalty)

    return TrendScoreResult(score=combined, regime=stock_regime, risk_flags=flags)


def compute_trend_metrics(closes: Sequence[float], window: int = 200) -> TrendMetrics | None:
    """Build TrendMetrics from a daily close series (oldest first).

    Returns None when fewer than ``window`` closes are available.
    """
    prices = np.asarray([c for c in closes if c is not None and c > 0], dtype=float)
    if prices.size < window:
        logger.debug("Only %d closes available, need %d for trend metrics", prices.size, window)
        return None

    price = float(prices[-1])
    dma50 = float(np.mean(prices[-50:]))
    dma100 = float(np.mean(prices[-100:]))
    dma200 = float(np.mean(prices[-200:]))
    distance_pct = (price - dma200) / dma200 * 100 if dma200 > 0 else 0.0

    return TrendMetrics(
        price=price,
        dma50=dma50,
        dma100=dma100,
        dma200=dma200,
        distance_from_200dma_pct=distance_pct,
    )
