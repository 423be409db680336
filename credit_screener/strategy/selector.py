"""Strategy eligibility from trend regime and fundamental holdability."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..models.market import Fundamentals, TrendMetrics
from ..models.types import MarketRegime, StrategyType
from ..scoring.trend import derive_regime

logger = logging.getLogger("credit_screener.strategy")


class StrategySelectionConfig:
    """Holdability thresholds for assignment-style strategies (CSP, CC)."""

    def __init__(
        self,
        min_market_cap: float = 5_000_000_000,
        max_debt_to_equity: float = 2.5,
        min_current_ratio: float = 1.0,
    ):
        self.min_market_cap = min_market_cap
        self.max_debt_to_equity = max_debt_to_equity
        self.min_current_ratio = min_current_ratio

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "StrategySelectionConfig":
        return cls(
            min_market_cap=config.get('min_market_cap', 5_000_000_000),
            max_debt_to_equity=config.get('max_debt_to_equity', 2.5),
            min_current_ratio=config.get('min_current_ratio', 1.0),
        )


@dataclass(frozen=True)
class StrategySelectionInput:
    market_trend: TrendMetrics
    stock_trend: TrendMetrics
    fundamentals: Fundamentals | None = None
    prefer_defined_risk: bool | None = None


@dataclass(frozen=True)
class StrategySelectionResult:
    strategies: Tuple[StrategyType, ...]
    market_regime: MarketRegime
    stock_regime: MarketRegime
    assignment_eligible: bool = False


def is_holdable(
    fundamentals: Fundamentals | None,
    config: StrategySelectionConfig | None = None,
) -> bool:
    """Whether the name is safe to own on assignment.

    Missing fundamentals fail; individual missing metrics are not held against it.
    """
    config = config or StrategySelectionConfig()
    if fundamentals is None:
        return False
    if fundamentals.market_cap is not None and fundamentals.market_cap < config.min_market_cap:
        return False
    if (fundamentals.debt_to_equity is not None
            and fundamentals.debt_to_equity > config.max_debt_to_equity):
        return False
    if (fundamentals.current_ratio is not None
            and fundamentals.current_ratio < config.min_current_ratio):
        return False
    return True


def select_strategies(
    selection_input: StrategySelectionInput,
    config: StrategySelectionConfig | None = None,
) -> StrategySelectionResult:
    """Map regimes and holdability onto the eligible strategy set.

    Args:
        selection_input: Market and stock trend, fundamentals, defined-risk preference
        config: Holdability thresholds (defaults if None)

    Returns:
        StrategySelectionResult; strategies ordered PCS, CSP, CCS, CC

    Rules:
        - Unless market and stock are both BEAR: PCS, plus CSP without defined-risk bias
        - Unless market and stock are both BULL: CCS, plus CC without defined-risk bias
        - Defined-risk bias defaults to failing holdability
    """
    market_regime = derive_regime(selection_input.market_trend)
    stock_regime = derive_regime(selection_input.stock_trend)
    assignment_eligible = is_holdable(selection_input.fundamentals, config)

    prefer_defined_risk = selection_input.prefer_defined_risk
    if prefer_defined_risk is None:
        prefer_defined_risk = not assignment_eligible

    bullish_or_neutral = market_regime != MarketRegime.BEAR and stock_regime != MarketRegime.BEAR
    neutral_or_bearish = market_regime != MarketRegime.BULL or stock_regime != MarketRegime.BULL

    strategies: List[StrategyType] = []
    if bullish_or_neutral:
        strategies.append(StrategyType.PCS)
        if not prefer_defined_risk:
            strategies.append(StrategyType.CSP)
    if neutral_or_bearish:
        strategies.append(StrategyType.CCS)
        if not prefer_defined_risk:
            strategies.append(StrategyType.CC)

    logger.debug(
        "Market %s, stock %s, holdable=%s -> %s",
        market_regime.value, stock_regime.value, assignment_eligible,
        ", ".join(s.value for s in strategies) or "none",
    )

    return StrategySelectionResult(
        strategies=tuple(strategies),
        market_regime=market_regime,
        stock_regime=stock_regime,
        assignment_eligible=assignment_eligible,
    )
