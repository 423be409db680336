"""Run-wide configuration aggregating every component config.

A YAML file mirrors the structure of ``default_params.yaml``: one section per
component, each passed to that component's ``from_dict``. Missing sections
and keys fall back to the defaults.
"""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from ..builders.expiration_ranker import ExpirationRankingConfig
from ..builders.strike_finder import StrikeFinderConfig
from ..liquidity.gate import LiquidityGateConfig
from ..risk.position_sizing import DEFAULT_MAX_ALLOCATION_PCT
from ..scoring.events import EventScoreConfig
from ..scoring.scorer import ScoringConfig
from ..scoring.trend import TrendScoreConfig
from ..scoring.volatility import VolatilityScoreConfig
from ..strategy.selector import StrategySelectionConfig
from ..universe.builder import UniverseBuildConfig
from ..utils.error_handling import ConfigurationError

logger = logging.getLogger("credit_screener.config")

DEFAULT_MARKET_BENCHMARK = "SPY"
DEFAULT_MAX_CANDIDATES = 25
DEFAULT_PRICE_HISTORY_DAYS = 260


class ScreenerConfig:
    """Every threshold used by a qualify run."""

    def __init__(
        self,
        universe: UniverseBuildConfig | None = None,
        liquidity: LiquidityGateConfig | None = None,
        strike_finder: StrikeFinderConfig | None = None,
        expirations: ExpirationRankingConfig | None = None,
        strategy_selection: StrategySelectionConfig | None = None,
        trend: TrendScoreConfig | None = None,
        volatility: VolatilityScoreConfig | None = None,
        events: EventScoreConfig | None = None,
        scoring: ScoringConfig | None = None,
        market_benchmark: str = DEFAULT_MARKET_BENCHMARK,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        price_history_days: int = DEFAULT_PRICE_HISTORY_DAYS,
        max_per_trade_pct: float = DEFAULT_MAX_ALLOCATION_PCT,
    ):
        """Initialize run configuration.

        Args:
            universe: Universe hard filters
            liquidity: Liquidity gate thresholds
            strike_finder: Strike bands and credit floors
            expirations: DTE windows and ranking
            strategy_selection: Holdability thresholds
            trend: Trend-safety blend
            volatility: IV thresholds
            events: Earnings and macro penalties
            scoring: Component weights
            market_benchmark: Symbol whose trend defines the market regime
            max_candidates: Default cap on returned candidates
            price_history_days: Daily closes requested for trend metrics
            max_per_trade_pct: Default per-trade allocation limit
        """
        self.universe = universe or UniverseBuildConfig()
        self.liquidity = liquidity or LiquidityGateConfig()
        self.strike_finder = strike_finder or StrikeFinderConfig()
        self.expirations = expirations or ExpirationRankingConfig()
        self.strategy_selection = strategy_selection or StrategySelectionConfig()
        self.trend = trend or TrendScoreConfig()
        self.volatility = volatility or VolatilityScoreConfig()
        self.events = events or EventScoreConfig()
        self.scoring = scoring or ScoringConfig()
        self.market_benchmark = market_benchmark.upper()
        self.max_candidates = max_candidates
        self.price_history_days = price_history_days
        self.max_per_trade_pct = max_per_trade_pct

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ScreenerConfig":
        """Create ScreenerConfig from a nested dictionary (e.g., from YAML)."""
        qualify = config.get('qualify') or {}
        return cls(
            universe=UniverseBuildConfig.from_dict(config.get('universe') or {}),
            liquidity=LiquidityGateConfig.from_dict(config.get('liquidity') or {}),
            strike_finder=StrikeFinderConfig.from_dict(config.get('strike_finder') or {}),
            expirations=ExpirationRankingConfig.from_dict(config.get('expirations') or {}),
            strategy_selection=StrategySelectionConfig.from_dict(
                config.get('strategy_selection') or {}),
            trend=TrendScoreConfig.from_dict(config.get('trend') or {}),
            volatility=VolatilityScoreConfig.from_dict(config.get('volatility') or {}),
            events=EventScoreConfig.from_dict(config.get('events') or {}),
            scoring=ScoringConfig.from_dict(config.get('scoring') or {}),
            market_benchmark=qualify.get('market_benchmark', DEFAULT_MARKET_BENCHMARK),
            max_candidates=qualify.get('max_candidates', DEFAULT_MAX_CANDIDATES),
            price_history_days=qualify.get('price_history_days', DEFAULT_PRICE_HISTORY_DAYS),
            max_per_trade_pct=qualify.get('max_per_trade_pct', DEFAULT_MAX_ALLOCATION_PCT),
        )


def load_config(path: str | Path | None = None) -> ScreenerConfig:
    """Load a ScreenerConfig from a YAML file.

    Args:
        path: YAML file; None returns the built-in defaults

    Returns:
        ScreenerConfig

    Raises:
        ConfigurationError: If the file is missing, unparseable, or not a mapping

    Example:
        >>> config = load_config("my_params.yaml")
        >>> config.strike_finder.min_credit
        0.25
    """
    if path is None:
        return ScreenerConfig()

    path = Path(path)
    try:
        with open(path) as f:
            params = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    logger.info("Loaded configuration from %s", path)
    try:
        return ScreenerConfig.from_dict(params)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e
