"""Expiration ranking for strike-resolved candidates.

DTE distance from the target window is a rank penalty, never a filter.
"""

import logging
from typing import Any, Dict, List, Sequence

from ..models.candidates import ExpirationCandidate, ExpirationRanked
from ..utils.error_handling import clamp, safe_divide

logger = logging.getLogger("credit_screener.expiration_ranker")


class ExpirationRankingConfig:
    """Configuration for expiration ranking."""

    def __init__(
        self,
        min_dte: int = 30,
        max_dte: int = 60,
        soft_min_dte: int = 25,
        soft_max_dte: int = 70,
        event_penalty: float = 0.15,
        top_n: int = 3,
    ):
        """Initialize expiration ranking configuration.

        Args:
            min_dte: Start of the preferred DTE window
            max_dte: End of the preferred DTE window
            soft_min_dte: Start of the tolerated DTE band
            soft_max_dte: End of the tolerated DTE band
            event_penalty: Score deduction for candidates carrying risk flags
            top_n: Number of expirations returned
        """
        self.min_dte = min_dte
        self.max_dte = max_dte
        self.soft_min_dte = soft_min_dte
        self.soft_max_dte = soft_max_dte
        self.event_penalty = event_penalty
        self.top_n = top_n

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ExpirationRankingConfig":
        """Create ExpirationRankingConfig from dictionary (e.g., from YAML)."""
        return cls(
            min_dte=config.get('min_dte', 30),
            max_dte=config.get('max_dte', 60),
            soft_min_dte=config.get('soft_min_dte', 25),
            soft_max_dte=config.get('soft_max_dte', 70),
            event_penalty=config.get('event_penalty', 0.15),
            top_n=config.get('top_n', 3),
        )


def dte_score(dte: int, config: ExpirationRankingConfig) -> float:
    """1.0 inside the target window, 0.6 inside the soft band, else 0.2."""
    if config.min_dte <= dte <= config.max_dte:
        return 1.0
    if config.soft_min_dte <= dte <= config.soft_max_dte:
        return 0.6
    return 0.2


def efficiency_score(theta_per_day: float, credit: float, max_loss: float) -> float:
    """Equal blend of normalized theta/day and credit-to-max-loss."""
    theta_factor = clamp(theta_per_day / 1.0)
    credit_factor = clamp(safe_divide(credit, max_loss) / 0.5)
    return 0.5 * theta_factor + 0.5 * credit_factor


def score_expiration(candidate: ExpirationCandidate, config: ExpirationRankingConfig) -> float:
    penalty = config.event_penalty if candidate.risk_flags else 0.0
    return clamp(
        0.6 * dte_score(candidate.dte, config)
        + 0.4 * efficiency_score(candidate.theta_per_day, candidate.credit, candidate.max_loss)
        - penalty
    )


def rank_expirations(
    candidates: Sequence[ExpirationCandidate],
    config: ExpirationRankingConfig | None = None,
) -> List[ExpirationRanked]:
    """Score expirations and return the top N, best first.

    Args:
        candidates: Strike-resolved expiration summaries
        config: Ranking configuration (defaults if None)

    Returns:
        At most top_n ExpirationRanked, sorted by score descending.
        Equal scores keep their input order.
    """
    config = config or ExpirationRankingConfig()

    ranked = [
        ExpirationRanked(
            expiration=candidate.expiration,
            dte=candidate.dte,
            theta_per_day=candidate.theta_per_day,
            credit=candidate.credit,
            max_loss=candidate.max_loss,
            strategy=candidate.strategy,
            risk_flags=candidate.risk_flags,
            score=score_expiration(candidate, config),
        )
        for candidate in candidates
    ]
    ranked.sort(key=lambda r: r.score, reverse=True)

    logger.debug(
        "Ranked %d expirations, keeping %d", len(ranked), min(len(ranked), config.top_n)
    )
    return ranked[:config.top_n]
