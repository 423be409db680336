"""Request/response contracts consumed by thin HTTP handlers.

Each contract takes a JSON-shaped dict and returns a JSON-shaped dict with
camelCase keys. Malformed input raises RequestValidationError (status 400).
Everything except ``qualify`` and ``build_universe`` is a pure transform.
"""

import logging
from typing import Any, Callable, Dict, Mapping, TypeVar

from ..builders.expiration_ranker import ExpirationRankingConfig
from ..builders.expiration_ranker import rank_expirations as rank_expiration_candidates
from ..builders.strike_finder import StrikeFinderConfig, find_strike_candidate
from ..liquidity.gate import LiquidityGateConfig, evaluate_liquidity_gate
from ..models.portfolio import PositionSizingInput
from ..models.qualify import QualifyRequest
from ..models.types import RecommendationProfile, StrategyType, UniverseSource
from ..models.universe import UniverseBuildRequest
from ..output.explanation import ExplanationInput, build_explanation
from ..providers.base import FundamentalsProvider, MarketDataProvider
from ..qualify.orchestrator import QualifyOrchestrator
from ..risk.concentration import ConcentrationConfig, evaluate_concentration_risk
from ..risk.position_sizing import evaluate_position_sizing
from ..scoring.scorer import ScoreInput, ScoringConfig, score_candidate
from ..scoring.volatility import VolatilityScoreConfig
from ..strategy.selector import StrategySelectionConfig, StrategySelectionInput, select_strategies
from ..universe.builder import UniverseBuildConfig
from ..universe.builder import build_universe as build_universe_result
from ..utils.error_handling import ConfigurationError, RequestValidationError
from .serialization import (
    config_section,
    get_bool,
    get_enum,
    get_int,
    get_list,
    get_number,
    get_risk_flags,
    optional_mapping,
    parse_calendar,
    parse_chain,
    parse_contracts,
    parse_expiration_candidate,
    parse_fundamentals,
    parse_liquidity_result,
    parse_position,
    parse_score_breakdown,
    parse_strike_candidate,
    parse_trend_metrics,
    parse_volatility,
    require_mapping,
    to_json,
)

logger = logging.getLogger("credit_screener.api")

C = TypeVar('C')

JsonDict = Dict[str, Any]


def _build_config(factory: Callable[[Dict[str, Any]], C], section: Dict[str, Any],
                  path: str = 'config') -> C:
    """Run a config ``from_dict`` and report bad values as a 400."""
    try:
        return factory(section)
    except (TypeError, ValueError, ConfigurationError) as e:
        raise RequestValidationError(f"{path} is invalid: {e}") from e


def _tickers(payload: Mapping[str, Any]) -> tuple:
    tickers = get_list(payload, 'tickers')
    for index, ticker in enumerate(tickers):
        if not isinstance(ticker, str):
            raise RequestValidationError(f"tickers[{index}] must be a string")
    return tuple(tickers)


def _universe_fields(payload: Mapping[str, Any]) -> JsonDict:
    source = get_enum(payload, 'source', UniverseSource, default=UniverseSource.MANUAL)
    tickers = _tickers(payload)
    if source == UniverseSource.MANUAL and not tickers:
        raise RequestValidationError("tickers is required for MANUAL source")
    return {
        'source': source,
        'tickers': tickers,
        'recommendation_profile': get_enum(payload, 'recommendationProfile', RecommendationProfile),
    }


def qualify(payload: Any, orchestrator: QualifyOrchestrator) -> JsonDict:
    """Run a qualify pass.

    Request: ``{source, tickers?, recommendationProfile?, accountSize,
    preferences?: {preferDefinedRisk?, maxPerTradePct?}, maxCandidates?}``
    """
    payload = require_mapping(payload, "")
    account_size = get_number(payload, 'accountSize', required=True)
    if account_size <= 0:
        raise RequestValidationError("accountSize must be positive")

    preferences = optional_mapping(payload, 'preferences') or {}
    max_per_trade_pct = get_number(preferences, 'maxPerTradePct', 'preferences')
    if max_per_trade_pct is not None and not 0 < max_per_trade_pct <= 1:
        raise RequestValidationError("preferences.maxPerTradePct must be in (0, 1]")
    max_candidates = get_int(payload, 'maxCandidates')
    if max_candidates is not None and max_candidates < 1:
        raise RequestValidationError("maxCandidates must be at least 1")

    request = QualifyRequest(
        account_size=account_size,
        prefer_defined_risk=get_bool(preferences, 'preferDefinedRisk', 'preferences'),
        max_per_trade_pct=max_per_trade_pct,
        max_candidates=max_candidates,
        **_universe_fields(payload),
    )
    response = orchestrator.qualify(request)
    return {
        'generatedAt': to_json(response.generated_at),
        'candidates': [
            {
                'ticker': qualified.ticker,
                'candidate': to_json(qualified.candidate),
                'sizing': to_json(qualified.sizing),
            }
            for qualified in response.candidates
        ],
        'disqualified': [
            {'ticker': entry.ticker, 'reasons': list(entry.reasons)}
            for entry in response.disqualified
        ],
    }


def build_universe(
    payload: Any,
    fundamentals_provider: FundamentalsProvider | None = None,
    market_provider: MarketDataProvider | None = None,
) -> JsonDict:
    """Request: ``{source, tickers?, recommendationProfile?, config?}``."""
    payload = require_mapping(payload, "")
    request = UniverseBuildRequest(**_universe_fields(payload))
    config = _build_config(UniverseBuildConfig.from_dict, config_section(payload))
    result = build_universe_result(request, fundamentals_provider, market_provider, config)
    return to_json(result)


def liquidity_gate(payload: Any) -> JsonDict:
    """Request: ``{avgDailyVolume, shortStrike?, contracts, config?}``."""
    payload = require_mapping(payload, "")
    contracts = parse_contracts(get_list(payload, 'contracts', required=True), 'contracts')
    config = _build_config(LiquidityGateConfig.from_dict, config_section(payload))
    result = evaluate_liquidity_gate(
        get_number(payload, 'avgDailyVolume'),
        contracts,
        get_number(payload, 'shortStrike'),
        config,
    )
    return to_json(result)


def strike_finder(payload: Any) -> JsonDict:
    """Request: ``{chain, underlyingPrice, strategy, config?}``."""
    payload = require_mapping(payload, "")
    if payload.get('chain') is None:
        raise RequestValidationError("chain is required")
    chain = parse_chain(payload['chain'], 'chain')
    price = get_number(payload, 'underlyingPrice', required=True)
    if price <= 0:
        raise RequestValidationError("underlyingPrice must be positive")
    strategy = get_enum(payload, 'strategy', StrategyType, required=True)
    config = _build_config(StrikeFinderConfig.from_dict, config_section(payload))
    return to_json(find_strike_candidate(chain, price, strategy, config))


def strategy_select(payload: Any) -> JsonDict:
    """Request: ``{marketTrend, stockTrend, fundamentals?, preferDefinedRisk?, config?}``."""
    payload = require_mapping(payload, "")
    for key in ('marketTrend', 'stockTrend'):
        if payload.get(key) is None:
            raise RequestValidationError(f"{key} is required")
    fundamentals = payload.get('fundamentals')
    selection_input = StrategySelectionInput(
        market_trend=parse_trend_metrics(payload['marketTrend'], 'marketTrend'),
        stock_trend=parse_trend_metrics(payload['stockTrend'], 'stockTrend'),
        fundamentals=parse_fundamentals(fundamentals, 'fundamentals') if fundamentals is not None else None,
        prefer_defined_risk=get_bool(payload, 'preferDefinedRisk'),
    )
    config = _build_config(StrategySelectionConfig.from_dict, config_section(payload))
    return to_json(select_strategies(selection_input, config))


def score(payload: Any) -> JsonDict:
    """Request: ScoreInput fields plus optional ``config`` (weights, volatility)."""
    payload = require_mapping(payload, "")
    fundamentals = payload.get('fundamentals')
    liquidity = payload.get('liquidityGate')
    trend_score = get_number(payload, 'trendScore')
    if trend_score is not None and not 0 <= trend_score <= 1:
        raise RequestValidationError("trendScore must be between 0 and 1")

    score_input = ScoreInput(
        fundamentals=parse_fundamentals(fundamentals, 'fundamentals') if fundamentals is not None else None,
        liquidity_gate=parse_liquidity_result(liquidity, 'liquidityGate') if liquidity is not None else None,
        implied_vol=get_number(payload, 'impliedVol'),
        iv_change_rate=get_number(payload, 'ivChangeRate'),
        trend_score=trend_score,
        event_risk_flags=get_risk_flags(payload, 'eventRiskFlags'),
    )
    section = config_section(payload)
    config = _build_config(ScoringConfig.from_dict, section)
    volatility_config = _build_config(VolatilityScoreConfig.from_dict,
                                      section.get('volatility') or {}, 'config.volatility')
    return to_json(score_candidate(score_input, config, volatility_config))


def sizing_check(payload: Any) -> JsonDict:
    """Request: ``{accountSize, requiredCollateral, maxAllocationPct?}``."""
    payload = require_mapping(payload, "")
    account_size = get_number(payload, 'accountSize', required=True)
    required_collateral = get_number(payload, 'requiredCollateral', required=True)
    if account_size < 0 or required_collateral < 0:
        raise RequestValidationError("accountSize and requiredCollateral must be non-negative")
    return to_json(evaluate_position_sizing(PositionSizingInput(
        account_size=account_size,
        required_collateral=required_collateral,
        max_allocation_pct=get_number(payload, 'maxAllocationPct'),
    )))


def concentration(payload: Any) -> JsonDict:
    """Request: ``{positions, config?}``."""
    payload = require_mapping(payload, "")
    positions = [parse_position(item, f"positions[{index}]")
                 for index, item in enumerate(get_list(payload, 'positions', required=True))]
    config = _build_config(ConcentrationConfig.from_dict, config_section(payload))
    return to_json(evaluate_concentration_risk(positions, config))


def explain(payload: Any) -> JsonDict:
    """Request: ExplanationInput fields; every field is optional."""
    payload = require_mapping(payload, "")

    def optional(key: str, parser):
        value = payload.get(key)
        return parser(value, key) if value is not None else None

    explanation_input = ExplanationInput(
        volatility=optional('volatility', parse_volatility),
        strike=optional('strike', parse_strike_candidate),
        underlying_price=get_number(payload, 'underlyingPrice'),
        trade_dte=get_int(payload, 'tradeDte'),
        liquidity=optional('liquidity', parse_liquidity_result),
        fundamentals=optional('fundamentals', parse_fundamentals),
        trend=optional('trend', parse_trend_metrics),
        calendar=optional('calendar', parse_calendar),
        score=optional('score', parse_score_breakdown),
        risk_flags=get_risk_flags(payload, 'riskFlags'),
    )
    result = build_explanation(explanation_input)
    return {'why': list(result.why), 'riskFlags': to_json(result.risk_flags)}


def rank_expirations(payload: Any) -> JsonDict:
    """Request: ``{candidates, config?}``; response ``{ranked}``."""
    payload = require_mapping(payload, "")
    candidates = [parse_expiration_candidate(item, f"candidates[{index}]")
                  for index, item in enumerate(get_list(payload, 'candidates', required=True))]
    config = _build_config(ExpirationRankingConfig.from_dict, config_section(payload))
    return {'ranked': to_json(rank_expiration_candidates(candidates, config))}
