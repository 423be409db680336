"""Integration tests for the qualify orchestrator over an in-memory provider."""

from collections import Counter
from dataclasses import replace
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from credit_screener.models.candidates import (
    LiquidityDisqualification,
    LiquidityGateResult,
    LiquidityReasonCode,
    StrikeReasonCode,
)
from credit_screener.models.market import (
    CalendarSnapshot,
    CompanyProfile,
    EarningsInfo,
    Fundamentals,
    QuoteSnapshot,
    StockTrade,
)
from credit_screener.models.option import OptionChainSnapshot
from credit_screener.models.qualify import DisqualifiedTicker, QualifiedCandidate, QualifyRequest
from credit_screener.models.types import (
    MarketRegime,
    RecommendationProfile,
    RiskFlag,
    ScoreInterpretation,
    StrategyType,
    UniverseSource,
)
from credit_screener.output.console import print_header
from credit_screener.qualify.orchestrator import (
    QualifyOrchestrator,
    liquidity_risk_flags,
    summarize_rejections,
)
from credit_screener.tests.conftest import TODAY, make_spread_chain
from credit_screener.utils.error_handling import ProviderError

AS_OF = datetime(2025, 1, 2, 15, 30)


def add_listing(provider, symbol, chain_contracts=None, fundamentals=None, price=100.0,
                avg_volume=50_000_000):
    """Register a fully described US listing on a static provider."""
    provider.profiles[symbol] = CompanyProfile(symbol=symbol, company_name=f"{symbol} Inc.",
                                               country="US", exchange="NYSE", currency="USD",
                                               is_adr=False)
    provider.quotes[symbol] = QuoteSnapshot(symbol=symbol, price=price, avg_volume=avg_volume)
    provider.fundamentals[symbol] = fundamentals or Fundamentals(symbol=symbol)
    contracts = make_spread_chain(symbol) if chain_contracts is None else chain_contracts
    provider.chains[symbol] = OptionChainSnapshot(underlying=symbol, as_of=AS_OF,
                                                  contracts=tuple(contracts))


@pytest.fixture
def orchestrator(static_provider):
    return QualifyOrchestrator(static_provider, static_provider, static_provider,
                               today=lambda: TODAY)


@pytest.fixture
def request_aapl():
    return QualifyRequest(account_size=100_000, tickers=("AAPL",))


class TestQualifyHappyPath:
    """Test suite for a single liquid, well-described ticker."""

    def test_best_candidate(self, orchestrator, request_aapl):
        """Test the put credit spread wins ties and carries full economics."""
        response = orchestrator.qualify(request_aapl)

        assert response.disqualified == ()
        assert len(response.candidates) == 1
        qualified = response.candidates[0]
        assert qualified.kind == "qualified"
        trade = qualified.candidate

        assert trade.id == "AAPL-PCS-2025-02-16"
        assert trade.strategy == StrategyType.PCS
        assert trade.dte == 45
        assert trade.short_strike == 90
        assert trade.long_strike == 84
        assert trade.credit == pytest.approx(0.65)
        assert trade.max_loss == pytest.approx(5.35)
        assert trade.breakeven == pytest.approx(89.35)
        assert trade.pop == pytest.approx(0.8)
        assert trade.theta_per_day == pytest.approx(-0.01)
        assert trade.iv == 0.35
        assert trade.iv_trend == "stable"
        assert trade.stock_regime == MarketRegime.NEUTRAL
        assert trade.risk_flags == ()

    def test_score_and_explanation(self, orchestrator, request_aapl):
        """Test score breakdown and rationale bullets."""
        trade = orchestrator.qualify(request_aapl).candidates[0].candidate

        assert (trade.score.fundamentals, trade.score.liquidity, trade.score.volatility,
                trade.score.trend, trade.score.event_risk) == (30, 20, 20, 10, 10)
        assert trade.score.total == 90
        assert trade.interpretation == ScoreInterpretation.HIGH
        assert trade.why == (
            "IV at 35% with unknown trend.",
            "Short strike 90 at -0.20 delta.",
            "Short strike 10% OTM.",
            "Targeting 45 DTE window.",
            "Average daily volume 50M shares.",
            "Market cap 3T.",
        )

    def test_sizing(self, orchestrator, request_aapl):
        """Test collateral is max loss per contract against the default limit."""
        sizing = orchestrator.qualify(request_aapl).candidates[0].sizing

        assert sizing.required_collateral == pytest.approx(535.0)
        assert sizing.allocation_pct == pytest.approx(0.00535)
        assert sizing.max_allocation_pct == 0.05
        assert sizing.within_limit

    def test_sizing_breach_is_advisory(self, orchestrator):
        """Test an oversized trade is still returned with a warning."""
        response = orchestrator.qualify(QualifyRequest(account_size=5_000, tickers=("AAPL",)))

        sizing = response.candidates[0].sizing
        assert not sizing.within_limit
        assert sizing.warning == "Allocation 11% exceeds 5% limit."

    def test_request_limit_overrides_config(self, orchestrator):
        """Test the request's per-trade limit is used when given."""
        response = orchestrator.qualify(QualifyRequest(account_size=5_000, tickers=("AAPL",),
                                                       max_per_trade_pct=0.2))

        assert response.candidates[0].sizing.within_limit
        assert response.candidates[0].sizing.max_allocation_pct == 0.2

    def test_defined_risk_preference(self, orchestrator):
        """Test preferring defined risk never returns an assignment strategy."""
        response = orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("AAPL",),
                                                       prefer_defined_risk=True))

        assert response.candidates[0].candidate.strategy.is_spread

    def test_missing_benchmark_history_logged(self, orchestrator, request_aapl, caplog):
        """Test a missing market history falls back to neutral with a warning."""
        with caplog.at_level("WARNING", logger="credit_screener.qualify"):
            orchestrator.qualify(request_aapl)

        assert "No price history for SPY" in caplog.text

    def test_generated_at_is_aware(self, orchestrator, request_aapl):
        """Test the response timestamp carries a timezone."""
        assert orchestrator.qualify(request_aapl).generated_at.tzinfo is not None


class TestQualifyTrend:
    """Test suite for trend inputs from price history."""

    def test_flat_history(self, static_provider, request_aapl):
        """Test real history replaces the neutral midpoint."""
        static_provider.price_histories["SPY"] = [100.0] * 260
        static_provider.price_histories["AAPL"] = [100.0] * 260
        orchestrator = QualifyOrchestrator(static_provider, static_provider, static_provider,
                                           today=lambda: TODAY)

        trade = orchestrator.qualify(request_aapl).candidates[0].candidate

        # alignment 1.0 * 0.6 + distance 0.5 * 0.4 = 0.8
        assert trade.score.trend == 16
        assert trade.score.total == 96

    def test_trend_conflict(self, static_provider, request_aapl):
        """Test a bull stock in a neutral market is flagged and penalized."""
        static_provider.price_histories["SPY"] = [100.0] * 260
        static_provider.price_histories["AAPL"] = [float(i) for i in range(1, 261)]
        orchestrator = QualifyOrchestrator(static_provider, static_provider, static_provider,
                                           today=lambda: TODAY)

        trade = orchestrator.qualify(request_aapl).candidates[0].candidate

        assert trade.stock_regime == MarketRegime.BULL
        assert RiskFlag.TREND_CONFLICT in trade.risk_flags
        assert trade.score.trend == 16
        assert trade.score.event_risk == 8

    def test_history_fetched_once_per_symbol(self, static_provider):
        """Test the benchmark history is fetched once per run."""
        add_listing(static_provider, "JPM")
        spy = MagicMock(wraps=static_provider)
        orchestrator = QualifyOrchestrator(spy, static_provider, static_provider,
                                           today=lambda: TODAY)

        orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("AAPL", "JPM")))

        symbols = [c.args[0] for c in spy.get_price_history.call_args_list]
        assert sorted(symbols) == ["AAPL", "JPM", "SPY"]

    def test_history_failure_degrades(self, static_provider, request_aapl, caplog):
        """Test a failing history endpoint falls back to a neutral trend."""
        spy = MagicMock(wraps=static_provider)
        spy.get_price_history.side_effect = ProviderError("FMP API error (500): boom", 500)
        orchestrator = QualifyOrchestrator(spy, static_provider, static_provider,
                                           today=lambda: TODAY)

        with caplog.at_level("WARNING", logger="credit_screener.qualify"):
            response = orchestrator.qualify(request_aapl)

        assert response.candidates[0].candidate.score.trend == 10
        assert "Price history unavailable for AAPL" in caplog.text


class TestQualifyDisqualification:
    """Test suite for per-ticker disqualifications."""

    def test_universe_exclusion(self, orchestrator):
        """Test universe reasons are surfaced as messages."""
        response = orchestrator.qualify(QualifyRequest(account_size=100_000,
                                                       tickers=("AAPL", "GME")))

        assert [c.ticker for c in response.candidates] == ["AAPL"]
        excluded = response.disqualified[0]
        assert excluded.kind == "disqualified"
        assert excluded.ticker == "GME"
        assert "Ticker is flagged as meme-risk." in excluded.reasons

    def test_missing_price(self, static_provider, orchestrator, caplog):
        """Test a ticker with no price anywhere is disqualified."""
        add_listing(static_provider, "JPM")
        static_provider.quotes["JPM"] = QuoteSnapshot(symbol="JPM", avg_volume=10_000_000)

        with caplog.at_level("WARNING", logger="credit_screener.qualify"):
            response = orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("JPM",)))

        assert response.disqualified == (DisqualifiedTicker("JPM", ("Missing price data.",)),)
        assert "Latest trade unavailable for JPM" in caplog.text
        assert "Disqualified JPM: Missing price data." in caplog.text

    def test_price_from_latest_trade(self, static_provider, orchestrator):
        """Test the broker's latest trade fills a missing snapshot price."""
        add_listing(static_provider, "JPM")
        static_provider.quotes["JPM"] = QuoteSnapshot(symbol="JPM", avg_volume=10_000_000)
        static_provider.trades["JPM"] = StockTrade("JPM", price=100.0, size=100, timestamp=AS_OF)

        response = orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("JPM",)))

        assert response.candidates[0].candidate.short_strike == 90

    def test_no_expirations(self, static_provider, orchestrator):
        """Test an empty chain reports no strikes without codes."""
        add_listing(static_provider, "JPM", chain_contracts=())

        response = orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("JPM",)))

        assert response.disqualified[0].reasons == (
            "No valid strikes found within DTE window.",
        )

    def test_expired_chain_skipped(self, static_provider, orchestrator):
        """Test expirations on or before today are ignored."""
        add_listing(static_provider, "JPM", chain_contracts=make_spread_chain("JPM", TODAY))

        response = orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("JPM",)))

        assert response.disqualified[0].reasons == (
            "No valid strikes found within DTE window.",
        )

    def test_rejection_codes_summarized(self, static_provider, orchestrator):
        """Test strike rejections are counted across strategies."""
        # Only the far OTM legs, outside every delta band
        far_legs = [c for c in make_spread_chain("JPM") if c.strike in (84, 116)]
        add_listing(static_provider, "JPM", chain_contracts=far_legs)

        response = orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("JPM",)))

        assert response.disqualified[0].reasons == (
            "No valid strikes found within DTE window (NO_VALID_SHORT_STRIKE x4).",
        )

    def test_provider_failure_isolated(self, static_provider):
        """Test one ticker's provider failure does not abort the batch."""
        add_listing(static_provider, "JPM")
        market = MagicMock(wraps=static_provider)

        def chain_for(symbol):
            if symbol == "JPM":
                raise ProviderError("Alpaca API error (500): boom", status_code=500)
            return static_provider.get_option_chain_snapshot(symbol)

        market.get_option_chain_snapshot.side_effect = chain_for
        orchestrator = QualifyOrchestrator(static_provider, market, static_provider,
                                           today=lambda: TODAY)

        response = orchestrator.qualify(QualifyRequest(account_size=100_000,
                                                       tickers=("AAPL", "JPM")))

        assert [c.ticker for c in response.candidates] == ["AAPL"]
        assert response.disqualified == (
            DisqualifiedTicker("JPM", ("Alpaca API error (500): boom",)),
        )

    def test_qualify_ticker_value_error(self, static_provider, orchestrator, request_aapl):
        """Test malformed data errors become a disqualification."""
        fundamentals = MagicMock(wraps=static_provider)
        fundamentals.get_fundamentals.side_effect = ValueError("bad payload")
        orchestrator.fundamentals_provider = fundamentals

        outcome = orchestrator.qualify_ticker("AAPL", request_aapl)

        assert outcome == DisqualifiedTicker("AAPL", ("bad payload",))


class TestQualifyRanking:
    """Test suite for candidate ranking and truncation."""

    @pytest.fixture
    def two_tickers(self, static_provider):
        # Weak fundamentals score 60 and sort before AAPL alphabetically
        add_listing(static_provider, "AAL")
        return static_provider

    def test_sorted_by_score(self, two_tickers, orchestrator):
        """Test candidates are ordered by total score descending."""
        response = orchestrator.qualify(QualifyRequest(account_size=100_000,
                                                       tickers=("AAL", "AAPL")))

        assert [c.ticker for c in response.candidates] == ["AAPL", "AAL"]
        assert [c.candidate.score.total for c in response.candidates] == [90, 60]

    def test_max_candidates(self, two_tickers, orchestrator):
        """Test the request cap truncates the ranked list."""
        response = orchestrator.qualify(QualifyRequest(account_size=100_000,
                                                       tickers=("AAL", "AAPL"),
                                                       max_candidates=1))

        assert [c.ticker for c in response.candidates] == ["AAPL"]

    def test_config_max_candidates(self, two_tickers, orchestrator):
        """Test the config cap applies when the request has none."""
        orchestrator.config.max_candidates = 1

        response = orchestrator.qualify(QualifyRequest(account_size=100_000,
                                                       tickers=("AAL", "AAPL")))

        assert len(response.candidates) == 1

    def test_universe_size_counts_recommended_tickers(self, two_tickers, orchestrator, capsys):
        """Test a recommended run reports every resolved ticker, not just the returned ones."""
        two_tickers.constituents[RecommendationProfile.SP500] = ["AAL", "AAPL", "GME"]

        response = orchestrator.qualify(QualifyRequest(
            account_size=50_000,
            source=UniverseSource.RECOMMENDED,
            recommendation_profile=RecommendationProfile.SP500,
            max_candidates=1,
        ))
        print_header(50_000, response.universe_size)

        assert response.universe_size == 3
        assert len(response.candidates) == 1
        assert [d.ticker for d in response.disqualified] == ["GME"]
        assert "Account Size: $50,000   Tickers: 3" in capsys.readouterr().out


class TestQualifyRiskFlags:
    """Test suite for risk flags reaching candidates."""

    def test_low_open_interest(self, static_provider, orchestrator, request_aapl):
        """Test a failed liquidity gate lowers the score and flags low OI."""
        chain = static_provider.chains["AAPL"]
        static_provider.chains["AAPL"] = replace(
            chain, contracts=tuple(replace(c, open_interest=300) for c in chain.contracts),
        )

        trade = orchestrator.qualify(request_aapl).candidates[0].candidate

        assert trade.score.liquidity == 4
        assert trade.score.event_risk == 8
        assert trade.score.total == 72
        assert trade.interpretation == ScoreInterpretation.ACCEPTABLE
        assert trade.risk_flags == (RiskFlag.LOW_OI,)

    def test_earnings_within_trade(self, static_provider, orchestrator, request_aapl):
        """Test earnings before expiration add the earnings flag."""
        static_provider.calendars["AAPL"] = CalendarSnapshot(
            "AAPL", earnings=EarningsInfo(TODAY + timedelta(days=20), 20),
        )

        trade = orchestrator.qualify(request_aapl).candidates[0].candidate

        assert RiskFlag.EARNINGS_WITHIN_TRADE in trade.risk_flags
        assert trade.score.event_risk == 8


class TestHelpers:
    """Test suite for orchestrator helpers."""

    def test_summarize_rejections_top_three(self):
        """Test only the three most common codes are listed."""
        rejections = Counter({
            StrikeReasonCode.NO_VALID_SHORT_STRIKE: 5,
            StrikeReasonCode.POOR_CREDIT_TO_WIDTH: 3,
            StrikeReasonCode.NO_VALID_LONG_STRIKE: 2,
            StrikeReasonCode.INSUFFICIENT_CREDIT: 1,
        })

        assert summarize_rejections(rejections) == (
            "No valid strikes found within DTE window (NO_VALID_SHORT_STRIKE x5, "
            "POOR_CREDIT_TO_WIDTH x3, NO_VALID_LONG_STRIKE x2)."
        )

    def test_summarize_no_rejections(self):
        """Test an empty tally has no code list."""
        assert summarize_rejections(Counter()) == "No valid strikes found within DTE window."

    def test_liquidity_risk_flags(self):
        """Test gate reasons map onto candidate risk flags."""
        result = LiquidityGateResult(reasons=(
            LiquidityDisqualification(LiquidityReasonCode.LOW_STOCK_LIQUIDITY, "low volume"),
            LiquidityDisqualification(LiquidityReasonCode.WIDE_OPTIONS_SPREAD, "wide"),
            LiquidityDisqualification(LiquidityReasonCode.LOW_OPEN_INTEREST, "low OI"),
        ))

        assert liquidity_risk_flags(result) == (RiskFlag.WIDE_SPREADS, RiskFlag.LOW_OI)

    def test_outcome_types(self, orchestrator, request_aapl):
        """Test qualify_ticker returns a discriminated outcome."""
        outcome = orchestrator.qualify_ticker("AAPL", request_aapl)

        assert isinstance(outcome, QualifiedCandidate)
