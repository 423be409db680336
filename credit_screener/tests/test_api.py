"""Tests for the JSON boundary contracts and payload serialization."""

from datetime import date

import pytest

from credit_screener.api import contracts
from credit_screener.api.serialization import (
    camel_case,
    config_section,
    parse_chain,
    snake_case,
    snake_keys,
    to_json,
)
from credit_screener.models.candidates import ScoreBreakdown
from credit_screener.models.types import RiskFlag, StrategyType
from credit_screener.qualify.orchestrator import QualifyOrchestrator
from credit_screener.tests.conftest import TODAY
from credit_screener.utils.error_handling import RequestValidationError

EXPIRATION = "2025-02-16"


def contract_payload(strike, side, bid, ask, delta, open_interest=1000, theta=-0.03):
    return {
        'side': side, 'expiration': EXPIRATION, 'strike': strike, 'bid': bid, 'ask': ask,
        'delta': delta, 'theta': theta, 'openInterest': open_interest, 'volume': 50,
        'impliedVol': 0.35,
    }


@pytest.fixture
def chain_payload():
    return {
        'underlying': 'aapl',
        'asOf': '2025-01-02T15:30:00Z',
        'contracts': [
            contract_payload(90, 'put', 1.00, 1.02, -0.20),
            contract_payload(84, 'put', 0.33, 0.35, -0.09, theta=-0.02),
        ],
    }


@pytest.fixture
def orchestrator(static_provider):
    return QualifyOrchestrator(static_provider, static_provider, static_provider,
                               today=lambda: TODAY)


class TestSerialization:
    """Test suite for key conversion and model rendering."""

    @pytest.mark.parametrize("snake,camel", [
        ("min_otm_pct", "minOtmPct"),
        ("distance_from_200dma_pct", "distanceFrom200dmaPct"),
        ("dma50", "dma50"),
    ])
    def test_camel_case(self, snake, camel):
        """Test field names render in camelCase."""
        assert camel_case(snake) == camel

    def test_snake_case(self):
        """Test camelCase keys convert back and all-caps keys survive."""
        assert snake_case("minOtmPct") == "min_otm_pct"
        assert snake_case("PCS") == "PCS"

    def test_snake_keys_nested(self):
        """Test conversion reaches nested mappings and lists."""
        converted = snake_keys({'strategies': {'PCS': {'targetDelta': 0.2}},
                                'items': [{'maxDte': 45}]})

        assert converted == {'strategies': {'PCS': {'target_delta': 0.2}},
                             'items': [{'max_dte': 45}]}

    def test_config_section(self):
        """Test the optional config object is converted for from_dict."""
        assert config_section({'config': {'minOpenInterest': 250}}) == {'min_open_interest': 250}
        assert config_section({}) == {}

    def test_to_json(self):
        """Test enums, dates, tuples and computed fields render."""
        breakdown = ScoreBreakdown.from_parts(26, 19, 17, 16, 7)

        assert to_json(breakdown) == {
            'fundamentals': 26, 'liquidity': 19, 'volatility': 17, 'trend': 16,
            'eventRisk': 7, 'total': 85,
        }
        assert to_json((RiskFlag.LOW_OI, date(2025, 2, 16))) == ["RISK_LOW_OI", "2025-02-16"]

    def test_parse_chain(self, chain_payload):
        """Test chain objects parse with generated OCC symbols."""
        chain = parse_chain(chain_payload, 'chain')

        assert chain.underlying == "AAPL"
        assert chain.as_of.tzinfo is not None
        assert chain.contracts[0].symbol == "AAPL250216P00090000"
        assert chain.contracts[0].open_interest == 1000

    def test_parse_chain_reports_path(self, chain_payload):
        """Test errors name the offending field."""
        chain_payload['contracts'][1]['bid'] = "cheap"

        with pytest.raises(RequestValidationError, match=r"chain\.contracts\[1\]\.bid must be a number"):
            parse_chain(chain_payload, 'chain')


class TestQualifyContract:
    """Test suite for the qualify contract."""

    def test_response_shape(self, orchestrator):
        """Test the response renders candidates in camelCase."""
        response = contracts.qualify({'tickers': ['AAPL', 'GME'], 'accountSize': 100_000},
                                     orchestrator)

        assert isinstance(response['generatedAt'], str)
        entry = response['candidates'][0]
        assert entry['ticker'] == "AAPL"
        assert entry['candidate']['strategy'] == "PCS"
        assert entry['candidate']['expiration'] == EXPIRATION
        assert entry['candidate']['shortStrike'] == 90
        assert entry['candidate']['score']['total'] == 90
        assert entry['candidate']['interpretation'] == "HIGH"
        assert entry['sizing']['withinLimit'] is True
        assert response['disqualified'][0]['ticker'] == "GME"

    @pytest.mark.parametrize("payload,message", [
        ([], "request must be an object"),
        ({'tickers': ['AAPL']}, "accountSize is required"),
        ({'tickers': ['AAPL'], 'accountSize': "lots"}, "accountSize must be a number"),
        ({'tickers': ['AAPL'], 'accountSize': 0}, "accountSize must be positive"),
        ({'accountSize': 1000}, "tickers is required for MANUAL source"),
        ({'tickers': [1], 'accountSize': 1000}, r"tickers\[0\] must be a string"),
        ({'source': 'ALL', 'accountSize': 1000}, "source must be one of"),
        ({'tickers': ['AAPL'], 'accountSize': 1000, 'preferences': {'maxPerTradePct': 2}},
         r"maxPerTradePct must be in \(0, 1\]"),
        ({'tickers': ['AAPL'], 'accountSize': 1000, 'preferences': {'preferDefinedRisk': "yes"}},
         "preferences.preferDefinedRisk must be a boolean"),
        ({'tickers': ['AAPL'], 'accountSize': 1000, 'maxCandidates': 0},
         "maxCandidates must be at least 1"),
        ({'tickers': ['AAPL'], 'accountSize': 1000, 'maxCandidates': 1.5},
         "maxCandidates must be an integer"),
    ])
    def test_validation(self, orchestrator, payload, message):
        """Test malformed requests raise a 400 validation error."""
        with pytest.raises(RequestValidationError, match=message) as excinfo:
            contracts.qualify(payload, orchestrator)

        assert excinfo.value.status == 400


class TestPureContracts:
    """Test suite for the stateless contracts."""

    def test_strike_finder(self, chain_payload):
        """Test a put credit spread is resolved from a JSON chain."""
        result = contracts.strike_finder({'chain': chain_payload, 'underlyingPrice': 100,
                                          'strategy': 'PCS'})

        assert result['shortStrike'] == 90
        assert result['longStrike'] == 84
        assert result['width'] == 6
        assert result['credit'] == pytest.approx(0.65)
        assert result['reasons'] == []

    def test_strike_finder_config_override(self, chain_payload):
        """Test camelCase config reaches the strike finder."""
        result = contracts.strike_finder({
            'chain': chain_payload, 'underlyingPrice': 100, 'strategy': 'PCS',
            'config': {'minCredit': 1.0},
        })

        assert result['reasons'][0]['code'] == "INSUFFICIENT_CREDIT"

    @pytest.mark.parametrize("payload,message", [
        ({'underlyingPrice': 100, 'strategy': 'PCS'}, "chain is required"),
        ({'chain': [], 'underlyingPrice': 0, 'strategy': 'PCS'}, "underlyingPrice must be positive"),
        ({'chain': [], 'underlyingPrice': 100, 'strategy': 'CONDOR'}, "strategy must be one of"),
    ])
    def test_strike_finder_validation(self, payload, message):
        """Test strike finder request errors."""
        with pytest.raises(RequestValidationError, match=message):
            contracts.strike_finder(payload)

    def test_liquidity_gate(self, chain_payload):
        """Test gate reasons render with their codes."""
        result = contracts.liquidity_gate({
            'avgDailyVolume': 500_000, 'shortStrike': 90,
            'contracts': chain_payload['contracts'],
        })

        assert result['passed'] is False
        assert [r['code'] for r in result['reasons']] == ["DISQUALIFIED_LOW_STOCK_LIQUIDITY"]
        assert result['diagnostics']['evaluatedStrike'] == 90

    def test_strategy_select(self):
        """Test a bullish market and stock select put-side strategies."""
        bull = {'price': 112, 'dma50': 108, 'dma100': 105, 'dma200': 100,
                'distanceFrom200dmaPct': 12}

        result = contracts.strategy_select({'marketTrend': bull, 'stockTrend': bull,
                                            'preferDefinedRisk': False})

        assert result['strategies'] == ["PCS", "CSP"]
        assert result['marketRegime'] == "BULL"

    def test_strategy_select_requires_trends(self):
        """Test both trend objects are required."""
        with pytest.raises(RequestValidationError, match="stockTrend is required"):
            contracts.strategy_select({'marketTrend': {}})

    def test_score_defaults(self):
        """Test an empty score request uses neutral components."""
        result = contracts.score({})

        assert result['breakdown']['fundamentals'] == 0
        assert result['breakdown']['trend'] == 10
        assert result['interpretation'] == "PASS"

    def test_score_validation(self):
        """Test trend score range and weight checks."""
        with pytest.raises(RequestValidationError, match="trendScore must be between 0 and 1"):
            contracts.score({'trendScore': 2})
        with pytest.raises(RequestValidationError, match="config is invalid"):
            contracts.score({'config': {'weights': {'fundamentals': 60}}})
        with pytest.raises(RequestValidationError, match=r"eventRiskFlags\[0\] is not a known risk flag"):
            contracts.score({'eventRiskFlags': ["RISK_UNKNOWN"]})

    def test_sizing_check(self):
        """Test the sizing contract."""
        result = contracts.sizing_check({'accountSize': 100_000, 'requiredCollateral': 6_000,
                                         'maxAllocationPct': 0.05})

        assert result['withinLimit'] is False
        assert result['warning'] == "Allocation 6% exceeds 5% limit."

    def test_sizing_check_negative(self):
        """Test negative amounts are rejected."""
        with pytest.raises(RequestValidationError, match="must be non-negative"):
            contracts.sizing_check({'accountSize': -1, 'requiredCollateral': 0})

    def test_concentration(self):
        """Test concentration flags render as codes."""
        result = contracts.concentration({'positions': [
            {'ticker': 'aapl', 'collateral': 3_000, 'sector': 'Technology'},
            {'ticker': 'MSFT', 'collateral': 3_000, 'sector': 'Technology'},
            {'ticker': 'JPM', 'collateral': 4_000, 'sector': 'Financials'},
        ]})

        assert result['riskFlags'] == ["RISK_SECTOR_CONCENTRATION", "RISK_CORRELATED_EXPOSURE"]
        assert result['sectorExposure']['Technology'] == 6_000

    def test_concentration_position_path(self):
        """Test position errors name their index."""
        with pytest.raises(RequestValidationError, match=r"positions\[0\]\.collateral is required"):
            contracts.concentration({'positions': [{'ticker': 'AAPL'}]})

    def test_explain(self):
        """Test the explain contract pads short explanations."""
        result = contracts.explain({
            'tradeDte': 30,
            'score': {'fundamentals': 30, 'liquidity': 20, 'volatility': 20,
                      'trend': 10, 'eventRisk': 10},
        })

        assert result == {
            'why': [
                "Targeting 30 DTE window.",
                "Score 90/100 with balanced breakdown.",
                "Meets baseline filters for strategy evaluation.",
            ],
            'riskFlags': [],
        }

    def test_explain_rejects_passed_without_reasons(self):
        """Test a failed liquidity result must carry reasons."""
        with pytest.raises(RequestValidationError, match="passed is false but no reasons"):
            contracts.explain({'liquidity': {'passed': False}})

    def test_rank_expirations(self):
        """Test ranked expirations are returned best first."""
        result = contracts.rank_expirations({'candidates': [
            {'expiration': '2025-03-28', 'dte': 85, 'thetaPerDay': 0.05, 'credit': 1.0,
             'maxLoss': 4.0, 'strategy': 'PCS'},
            {'expiration': '2025-02-16', 'dte': 45, 'thetaPerDay': 0.05, 'credit': 1.0,
             'maxLoss': 4.0, 'strategy': 'PCS'},
        ]})

        assert [r['expiration'] for r in result['ranked']] == ["2025-02-16", "2025-03-28"]
        assert result['ranked'][0]['score'] > result['ranked'][1]['score']

    def test_build_universe(self, static_provider):
        """Test the universe contract with an in-memory provider."""
        result = contracts.build_universe({'tickers': [' aapl', 'GME']}, static_provider,
                                          static_provider)

        assert [d['ticker'] for d in result['included']] == ["AAPL"]
        excluded = result['excluded'][0]
        assert excluded['ticker'] == "GME"
        assert excluded['reasons'][0]['code'] == "MEME_RISK"


def test_strategy_values_are_codes():
    """Test strategy enums serialize as their code."""
    assert to_json(StrategyType.CSP) == "CSP"
