"""Unit tests for strategy selection."""

import pytest

from credit_screener.models.market import Fundamentals, TrendMetrics
from credit_screener.models.types import MarketRegime, StrategyType
from credit_screener.strategy.selector import (
    StrategySelectionConfig,
    StrategySelectionInput,
    is_holdable,
    select_strategies,
)

BULL = TrendMetrics(price=120, dma50=115, dma100=110, dma200=100, distance_from_200dma_pct=20.0)
BEAR = TrendMetrics(price=80, dma50=85, dma100=90, dma200=100, distance_from_200dma_pct=-20.0)
NEUTRAL = TrendMetrics.neutral(100.0)


class TestIsHoldable:
    """Test suite for assignment holdability."""

    def test_strong_name(self, strong_fundamentals):
        """Test a large profitable company is holdable."""
        assert is_holdable(strong_fundamentals)

    def test_missing_fundamentals(self):
        """Test unknown fundamentals are not holdable."""
        assert not is_holdable(None)

    @pytest.mark.parametrize("overrides", [
        {'market_cap': 1e9},
        {'debt_to_equity': 3.0},
        {'current_ratio': 0.8},
    ])
    def test_threshold_failures(self, overrides):
        """Test each threshold independently fails holdability."""
        fields = {'market_cap': 50e9, 'debt_to_equity': 1.0, 'current_ratio': 1.5}
        fields.update(overrides)

        assert not is_holdable(Fundamentals(symbol="XYZ", **fields))

    def test_missing_metrics_not_held_against(self):
        """Test absent individual metrics pass."""
        assert is_holdable(Fundamentals(symbol="XYZ"))

    def test_custom_thresholds(self):
        """Test thresholds come from the config."""
        config = StrategySelectionConfig.from_dict({'min_market_cap': 100e9})

        assert not is_holdable(Fundamentals(symbol="XYZ", market_cap=50e9), config)


class TestSelectStrategies:
    """Test suite for select_strategies."""

    def test_bull_bull(self, strong_fundamentals):
        """Test a bull market and bull stock favor put-side premium."""
        result = select_strategies(StrategySelectionInput(BULL, BULL, strong_fundamentals))

        assert result.strategies == (StrategyType.PCS, StrategyType.CSP)
        assert result.market_regime == MarketRegime.BULL
        assert result.stock_regime == MarketRegime.BULL
        assert result.assignment_eligible

    def test_bear_bear(self, strong_fundamentals):
        """Test a bear market and bear stock favor call-side premium."""
        result = select_strategies(StrategySelectionInput(BEAR, BEAR, strong_fundamentals))

        assert result.strategies == (StrategyType.CCS, StrategyType.CC)

    def test_neutral_offers_both_sides(self, strong_fundamentals):
        """Test neutral regimes offer every strategy in fixed order."""
        result = select_strategies(StrategySelectionInput(NEUTRAL, NEUTRAL, strong_fundamentals))

        assert result.strategies == (
            StrategyType.PCS, StrategyType.CSP, StrategyType.CCS, StrategyType.CC,
        )

    def test_stock_bear_in_bull_market(self, strong_fundamentals):
        """Test a bearish stock blocks put-side strategies."""
        result = select_strategies(StrategySelectionInput(BULL, BEAR, strong_fundamentals))

        assert result.strategies == (StrategyType.CCS, StrategyType.CC)

    def test_prefer_defined_risk(self, strong_fundamentals):
        """Test the defined-risk preference keeps spreads only."""
        result = select_strategies(StrategySelectionInput(
            NEUTRAL, NEUTRAL, strong_fundamentals, prefer_defined_risk=True,
        ))

        assert result.strategies == (StrategyType.PCS, StrategyType.CCS)

    def test_unholdable_defaults_to_defined_risk(self):
        """Test names unsafe to own only get spreads."""
        result = select_strategies(StrategySelectionInput(NEUTRAL, NEUTRAL, None))

        assert result.strategies == (StrategyType.PCS, StrategyType.CCS)
        assert not result.assignment_eligible

    def test_explicit_preference_overrides_holdability(self):
        """Test an explicit False allows assignment strategies."""
        result = select_strategies(StrategySelectionInput(
            NEUTRAL, NEUTRAL, None, prefer_defined_risk=False,
        ))

        assert StrategyType.CSP in result.strategies
        assert StrategyType.CC in result.strategies
