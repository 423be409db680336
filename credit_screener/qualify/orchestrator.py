"""End-to-end qualification: universe, strategies, strikes, scoring, sizing.

Tickers are processed one at a time. Anything that goes wrong for a single
ticker (provider failure, malformed payload, no tradeable strikes) becomes a
disqualification entry; the run itself only fails on programming errors.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Tuple

import requests

from ..builders.expiration_ranker import rank_expirations
from ..builders.strike_finder import find_strike_candidate
from ..config.settings import ScreenerConfig
from ..liquidity.gate import evaluate_liquidity_gate
from ..models.candidates import (
    ExpirationCandidate,
    ExpirationRanked,
    LiquidityGateResult,
    LiquidityReasonCode,
    TradeCandidate,
)
from ..models.market import CalendarSnapshot, Fundamentals, TrendMetrics
from ..models.option import OptionChainSnapshot
from ..models.portfolio import PositionSizingInput
from ..models.qualify import (
    DisqualifiedTicker,
    QualifiedCandidate,
    QualifyRequest,
    QualifyResponse,
    TickerOutcome,
)
from ..models.types import MarketRegime, RiskFlag, StrategyType, dedupe_flags
from ..models.universe import UniverseBuildRequest
from ..output.explanation import ExplanationInput, build_explanation
from ..providers.base import CalendarProvider, FundamentalsProvider, MarketDataProvider
from ..risk.position_sizing import evaluate_position_sizing
from ..scoring.events import score_event_risk
from ..scoring.scorer import ScoreInput, score_candidate
from ..scoring.trend import compute_trend_metrics, score_trend_safety
from ..strategy.selector import StrategySelectionInput, select_strategies
from ..universe.builder import build_universe
from ..utils.error_handling import ProviderError

logger = logging.getLogger("credit_screener.qualify")

TICKER_ERRORS = (ProviderError, requests.RequestException, ValueError)

MISSING_PRICE_MESSAGE = "Missing price data."
NO_STRIKES_MESSAGE = "No valid strikes found within DTE window"
TOP_REJECTION_CODES = 3

LIQUIDITY_RISK_FLAGS = {
    LiquidityReasonCode.WIDE_OPTIONS_SPREAD: RiskFlag.WIDE_SPREADS,
    LiquidityReasonCode.LOW_OPEN_INTEREST: RiskFlag.LOW_OI,
}


@dataclass(frozen=True)
class TickerContext:
    """Market data gathered once per ticker and shared by every strategy."""

    ticker: str
    price: float
    avg_volume: float | None
    fundamentals: Fundamentals
    chain: OptionChainSnapshot
    calendar: CalendarSnapshot
    stock_trend: TrendMetrics
    stock_regime: MarketRegime
    trend_score: float | None = None
    trend_flags: Tuple[RiskFlag, ...] = field(default_factory=tuple)


def summarize_rejections(rejections: Counter) -> str:
    """Disqualification message naming the most common strike rejection codes.

    Example:
        >>> summarize_rejections(Counter({StrikeReasonCode.NO_VALID_SHORT_STRIKE: 4}))
        'No valid strikes found within DTE window (NO_VALID_SHORT_STRIKE x4).'
    """
    if not rejections:
        return f"{NO_STRIKES_MESSAGE}."
    top = ", ".join(f"{code.value} x{count}"
                    for code, count in rejections.most_common(TOP_REJECTION_CODES))
    return f"{NO_STRIKES_MESSAGE} ({top})."


def liquidity_risk_flags(liquidity: LiquidityGateResult) -> Tuple[RiskFlag, ...]:
    return dedupe_flags(LIQUIDITY_RISK_FLAGS[code] for code in liquidity.reason_codes
                        if code in LIQUIDITY_RISK_FLAGS)


class QualifyOrchestrator:
    """Runs qualify requests against a set of providers.

    Example:
        >>> provider = StaticDataProvider(...)
        >>> orchestrator = QualifyOrchestrator(provider, provider, provider)
        >>> response = orchestrator.qualify(QualifyRequest(account_size=100_000, tickers=("AAPL",)))
    """

    def __init__(
        self,
        fundamentals_provider: FundamentalsProvider,
        market_provider: MarketDataProvider,
        calendar_provider: CalendarProvider,
        config: ScreenerConfig | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.fundamentals_provider = fundamentals_provider
        self.market_provider = market_provider
        self.calendar_provider = calendar_provider
        self.config = config or ScreenerConfig()
        self._today = today
        self._trend_cache: Dict[str, TrendMetrics | None] = {}

    def qualify(self, request: QualifyRequest) -> QualifyResponse:
        """Qualify every ticker in the request's universe.

        Args:
            request: Ticker source, account size and preferences

        Returns:
            QualifyResponse with the best candidate per qualified ticker,
            ranked by total score and truncated to max_candidates, plus one
            entry per disqualified ticker
        """
        self._trend_cache = {}
        today = self._today()

        universe = build_universe(
            UniverseBuildRequest(
                source=request.source,
                tickers=request.tickers,
                recommendation_profile=request.recommendation_profile,
            ),
            self.fundamentals_provider,
            self.market_provider,
            self.config.universe,
        )

        candidates: List[QualifiedCandidate] = []
        disqualified: List[DisqualifiedTicker] = [
            DisqualifiedTicker(ticker=decision.ticker, reasons=decision.reason_messages)
            for decision in universe.excluded
        ]

        market_trend = self.trend_metrics(self.config.market_benchmark)
        if market_trend is None:
            logger.warning("No price history for %s; market regime treated as neutral",
                           self.config.market_benchmark)

        for decision in universe.included:
            outcome = self.qualify_ticker(decision.ticker, request, market_trend, today)
            if isinstance(outcome, QualifiedCandidate):
                candidates.append(outcome)
            else:
                logger.warning("Disqualified %s: %s", outcome.ticker, " ".join(outcome.reasons))
                disqualified.append(outcome)

        candidates.sort(key=lambda qualified: qualified.candidate.score.total, reverse=True)
        max_candidates = request.max_candidates or self.config.max_candidates
        candidates = candidates[:max_candidates]

        logger.info("Qualify run: %d candidates, %d disqualified",
                    len(candidates), len(disqualified))
        return QualifyResponse(
            generated_at=datetime.now(timezone.utc),
            candidates=tuple(candidates),
            disqualified=tuple(disqualified),
            universe_size=len(universe.included) + len(universe.excluded),
        )

    def qualify_ticker(
        self,
        ticker: str,
        request: QualifyRequest,
        market_trend: TrendMetrics | None = None,
        today: date | None = None,
    ) -> TickerOutcome:
        """Find, score and size the best trade for one ticker.

        Provider failures and malformed data become a disqualification
        carrying the error message.
        """
        today = today or self._today()
        try:
            return self._qualify_ticker(ticker, request, market_trend, today)
        except TICKER_ERRORS as e:
            logger.debug("Qualify failed for %s", ticker, exc_info=True)
            return DisqualifiedTicker(ticker=ticker, reasons=(str(e) or type(e).__name__,))

    def _qualify_ticker(
        self,
        ticker: str,
        request: QualifyRequest,
        market_trend: TrendMetrics | None,
        today: date,
    ) -> TickerOutcome:
        fundamentals = self.fundamentals_provider.get_fundamentals(ticker)
        price, avg_volume = self.resolve_price(ticker)
        if price is None:
            return DisqualifiedTicker(ticker=ticker, reasons=(MISSING_PRICE_MESSAGE,))

        chain = self.market_provider.get_option_chain_snapshot(ticker)
        calendar = self.calendar_provider.get_calendar_snapshot(ticker)

        stock_history = self.trend_metrics(ticker)
        stock_trend = stock_history or TrendMetrics.neutral(price)
        selection = select_strategies(
            StrategySelectionInput(
                market_trend=market_trend or TrendMetrics.neutral(price),
                stock_trend=stock_trend,
                fundamentals=fundamentals,
                prefer_defined_risk=request.prefer_defined_risk,
            ),
            self.config.strategy_selection,
        )
        trend = score_trend_safety(stock_trend, selection.market_regime, self.config.trend)

        context = TickerContext(
            ticker=ticker,
            price=price,
            avg_volume=avg_volume,
            fundamentals=fundamentals,
            chain=chain,
            calendar=calendar,
            stock_trend=stock_trend,
            stock_regime=selection.stock_regime,
            # Without real history the trend component stays at its neutral midpoint
            trend_score=trend.score if stock_history is not None else None,
            trend_flags=trend.risk_flags,
        )

        best: TradeCandidate | None = None
        rejections: Counter = Counter()
        for strategy in selection.strategies:
            for candidate in self.strategy_candidates(context, strategy, rejections, today):
                if best is None or candidate.score.total > best.score.total:
                    best = candidate

        if best is None:
            return DisqualifiedTicker(ticker=ticker, reasons=(summarize_rejections(rejections),))

        max_per_trade_pct = request.max_per_trade_pct
        if max_per_trade_pct is None:
            max_per_trade_pct = self.config.max_per_trade_pct
        sizing = evaluate_position_sizing(PositionSizingInput(
            account_size=request.account_size,
            required_collateral=best.required_collateral,
            max_allocation_pct=max_per_trade_pct,
        ))

        logger.debug("Qualified %s", best)
        return QualifiedCandidate(ticker=ticker, candidate=best, sizing=sizing)

    def rank_strategy_expirations(
        self,
        context: TickerContext,
        strategy: StrategyType,
        rejections: Counter,
        today: date,
    ) -> List[ExpirationRanked]:
        """Rank every unexpired expiration that yields a valid strike.

        Strike rejection codes are tallied into ``rejections``.
        """
        expiration_candidates: List[ExpirationCandidate] = []
        for expiration in context.chain.expirations():
            dte = (expiration - today).days
            if dte <= 0:
                continue
            strike = find_strike_candidate(context.chain.for_expiration(expiration),
                                           context.price, strategy, self.config.strike_finder)
            if not strike.is_valid:
                rejections.update(strike.reason_codes)
                continue
            events = score_event_risk((), context.calendar, dte, self.config.events, today)
            expiration_candidates.append(ExpirationCandidate(
                expiration=expiration,
                dte=dte,
                theta_per_day=strike.theta_per_day,
                credit=strike.credit,
                max_loss=strike.max_loss,
                strategy=strategy,
                risk_flags=events.risk_flags,
            ))
        return rank_expirations(expiration_candidates, self.config.expirations)

    def strategy_candidates(
        self,
        context: TickerContext,
        strategy: StrategyType,
        rejections: Counter,
        today: date,
    ) -> List[TradeCandidate]:
        """Scored trade candidates for the top-ranked expirations of one strategy."""
        candidates: List[TradeCandidate] = []
        for ranked in self.rank_strategy_expirations(context, strategy, rejections, today):
            expiry_chain = context.chain.for_expiration(ranked.expiration)
            strike = find_strike_candidate(expiry_chain, context.price, strategy,
                                           self.config.strike_finder)
            if not strike.is_valid:
                continue

            liquidity = evaluate_liquidity_gate(context.avg_volume, expiry_chain.contracts,
                                                strike.short_strike, self.config.liquidity)
            events = score_event_risk(
                dedupe_flags(context.trend_flags, liquidity_risk_flags(liquidity)),
                context.calendar, ranked.dte, self.config.events, today,
            )
            score = score_candidate(
                ScoreInput(
                    fundamentals=context.fundamentals,
                    liquidity_gate=liquidity,
                    implied_vol=strike.short_implied_vol,
                    iv_change_rate=None,
                    trend_score=context.trend_score,
                    event_risk_flags=events.risk_flags,
                ),
                self.config.scoring,
                self.config.volatility,
            )
            explanation = build_explanation(ExplanationInput(
                volatility=score.volatility,
                strike=strike,
                underlying_price=context.price,
                trade_dte=ranked.dte,
                liquidity=liquidity,
                fundamentals=context.fundamentals,
                trend=context.stock_trend,
                calendar=context.calendar,
                score=score.breakdown,
                risk_flags=score.risk_flags,
            ))

            candidates.append(TradeCandidate(
                id=TradeCandidate.make_id(context.ticker, strategy, ranked.expiration),
                ticker=context.ticker,
                strategy=strategy,
                expiration=ranked.expiration,
                dte=ranked.dte,
                short_strike=strike.short_strike,
                long_strike=strike.long_strike,
                credit=strike.credit,
                max_loss=strike.max_loss,
                breakeven=strike.breakeven,
                pop=strike.pop,
                theta_per_day=strike.theta_per_day,
                short_delta=strike.short_delta if strike.short_delta is not None else 0.0,
                iv=score.volatility.iv or 0.0,
                iv_trend=score.volatility.iv_regime.trend_label,
                stock_regime=context.stock_regime,
                risk_flags=explanation.risk_flags,
                score=score.breakdown,
                interpretation=score.interpretation,
                why=explanation.why,
            ))

        return candidates

    def resolve_price(self, ticker: str) -> Tuple[float | None, float | None]:
        """Underlying price and average daily volume.

        Price comes from the fundamentals quote snapshot, else the broker's
        latest trade, else the mid of the broker's latest quote.
        """
        snapshot = self.fundamentals_provider.get_quote_snapshot(ticker)
        avg_volume = snapshot.avg_volume if snapshot is not None else None
        if snapshot is not None and snapshot.price:
            return snapshot.price, avg_volume

        try:
            trade = self.market_provider.get_latest_trade(ticker)
            if trade.price > 0:
                return trade.price, avg_volume
        except ProviderError as e:
            logger.warning("Latest trade unavailable for %s: %s", ticker, e)

        try:
            quote = self.market_provider.get_latest_quote(ticker)
        except ProviderError as e:
            logger.warning("Latest quote unavailable for %s: %s", ticker, e)
            return None, avg_volume
        return quote.mid, avg_volume

    def trend_metrics(self, symbol: str) -> TrendMetrics | None:
        """Moving-average metrics from daily closes, cached for the run.

        None when history is unavailable or too short.
        """
        symbol = symbol.upper()
        if symbol in self._trend_cache:
            return self._trend_cache[symbol]

        try:
            closes = self.fundamentals_provider.get_price_history(
                symbol, self.config.price_history_days)
        except TICKER_ERRORS as e:
            logger.warning("Price history unavailable for %s: %s", symbol, e)
            closes = []

        metrics = compute_trend_metrics(closes)
        self._trend_cache[symbol] = metrics
        return metrics
