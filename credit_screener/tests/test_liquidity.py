"""Unit tests for the liquidity gate."""

import pytest

from credit_screener.liquidity.gate import (
    LiquidityGateConfig,
    evaluate_liquidity_gate,
    find_nearest_contract,
)
from credit_screener.models.candidates import LiquidityReasonCode
from credit_screener.tests.conftest import make_contract


@pytest.fixture
def liquid_contracts():
    return (
        make_contract(85, bid=0.50, ask=0.52, open_interest=800),
        make_contract(90, bid=1.00, ask=1.02, open_interest=2500),
        make_contract(95, bid=1.80, ask=1.84, open_interest=1200),
    )


class TestLiquidityGateConfig:
    """Test suite for LiquidityGateConfig."""

    def test_defaults(self):
        """Test default thresholds."""
        config = LiquidityGateConfig()

        assert config.min_avg_daily_volume == 1_000_000
        assert config.max_spread_pct == 0.05
        assert config.min_open_interest == 500

    def test_from_dict(self):
        """Test partial override from a dictionary."""
        config = LiquidityGateConfig.from_dict({'min_open_interest': 100})

        assert config.min_open_interest == 100
        assert config.max_spread_pct == 0.05


class TestFindNearestContract:
    """Test suite for evaluated-contract selection."""

    def test_nearest_strike(self, liquid_contracts):
        """Test the contract nearest the target strike is evaluated."""
        assert find_nearest_contract(liquid_contracts, 91.0).strike == 90

    def test_tie_keeps_first(self, liquid_contracts):
        """Test equidistant strikes keep the first contract."""
        assert find_nearest_contract(liquid_contracts, 87.5).strike == 85

    def test_highest_open_interest_without_target(self, liquid_contracts):
        """Test the most liquid contract is used when no strike is given."""
        assert find_nearest_contract(liquid_contracts).strike == 90

    def test_empty(self):
        """Test no contracts yields None."""
        assert find_nearest_contract(()) is None


class TestEvaluateLiquidityGate:
    """Test suite for evaluate_liquidity_gate."""

    def test_passes_liquid_name(self, liquid_contracts):
        """Test a liquid ticker passes with diagnostics filled in."""
        result = evaluate_liquidity_gate(50_000_000, liquid_contracts, short_strike=90)

        assert result.passed
        assert result.diagnostics.evaluated_strike == 90
        assert result.diagnostics.evaluated_open_interest == 2500
        assert result.diagnostics.evaluated_spread_pct == pytest.approx(0.02 / 1.01)

    def test_low_stock_volume(self, liquid_contracts):
        """Test 500k average volume fails a 1M threshold."""
        result = evaluate_liquidity_gate(500_000, liquid_contracts, short_strike=90)

        assert not result.passed
        assert LiquidityReasonCode.LOW_STOCK_LIQUIDITY in result.reason_codes
        assert result.reason_codes[0].value == "DISQUALIFIED_LOW_STOCK_LIQUIDITY"
        assert result.reasons[0].message == "Average volume 500,000 below 1,000,000."

    def test_unknown_volume_is_not_failed(self, liquid_contracts):
        """Test missing volume data does not disqualify."""
        result = evaluate_liquidity_gate(None, liquid_contracts, short_strike=90)

        assert result.passed

    def test_wide_spread_and_low_oi_both_reported(self):
        """Test every failing check is reported."""
        contracts = (make_contract(90, bid=0.80, ask=1.20, open_interest=120),)

        result = evaluate_liquidity_gate(5_000_000, contracts, short_strike=90)

        assert result.reason_codes == (
            LiquidityReasonCode.WIDE_OPTIONS_SPREAD,
            LiquidityReasonCode.LOW_OPEN_INTEREST,
        )
        assert result.reasons[0].message == "Options spread 40.00% exceeds 5%."
        assert result.reasons[1].message == "Open interest 120 below 500."

    def test_no_contracts(self):
        """Test an empty chain only checks stock volume."""
        result = evaluate_liquidity_gate(5_000_000, ())

        assert result.passed
        assert result.diagnostics.evaluated_strike is None

    def test_custom_thresholds(self, liquid_contracts):
        """Test thresholds come from the config."""
        config = LiquidityGateConfig(min_open_interest=3000)

        result = evaluate_liquidity_gate(5_000_000, liquid_contracts, short_strike=90,
                                         config=config)

        assert result.reason_codes == (LiquidityReasonCode.LOW_OPEN_INTEREST,)
