"""JSON-shaped payload parsing and rendering for the boundary contracts.

Payloads use camelCase keys; models use snake_case fields. Parsers raise
RequestValidationError naming the offending path, e.g. ``chain.contracts[3].bid``.
"""

import re
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Type, TypeVar

from ..models.candidates import (
    ExpirationCandidate,
    LiquidityDiagnostics,
    LiquidityDisqualification,
    LiquidityGateResult,
    LiquidityReasonCode,
    ScoreBreakdown,
    StrikeCandidate,
)
from ..models.market import (
    CalendarSnapshot,
    EarningsInfo,
    Fundamentals,
    MacroEvent,
    TrendMetrics,
    VolatilityMetrics,
)
from ..models.option import OptionChainSnapshot, OptionContract
from ..models.portfolio import PositionExposure
from ..models.types import IvRegime, OptionSide, RiskFlag, StrategyType
from ..utils.error_handling import RequestValidationError

E = TypeVar('E', bound=Enum)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

# Derived values rendered alongside the stored fields
COMPUTED_FIELDS = {
    LiquidityGateResult: ("passed",),
    StrikeCandidate: ("width",),
}


def camel_case(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def snake_case(name: str) -> str:
    """minOtmPct -> min_otm_pct; all-caps keys such as PCS are left alone."""
    return _CAMEL_BOUNDARY.sub(lambda m: '_' + m.group(1).lower(), name)


def snake_keys(value: Any) -> Any:
    """Recursively convert mapping keys from camelCase to snake_case."""
    if isinstance(value, Mapping):
        return {snake_case(str(key)): snake_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [snake_keys(item) for item in value]
    return value


def to_json(value: Any) -> Any:
    """Render models as JSON-compatible values with camelCase keys.

    Enums render as their value, dates as ISO strings, tuples as lists.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        rendered = {camel_case(f.name): to_json(getattr(value, f.name)) for f in fields(value)}
        for name in COMPUTED_FIELDS.get(type(value), ()):
            rendered[camel_case(name)] = to_json(getattr(value, name))
        return rendered
    if isinstance(value, Mapping):
        return {str(to_json(key)): to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value


# ----------------------------------------------------------------------------
# Field readers
# ----------------------------------------------------------------------------

def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def require_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise RequestValidationError(f"{path or 'request'} must be an object")
    return value


def optional_mapping(payload: Mapping[str, Any], key: str, path: str = "") -> Mapping[str, Any] | None:
    value = payload.get(key)
    if value is None:
        return None
    return require_mapping(value, _join(path, key))


def get_list(payload: Mapping[str, Any], key: str, path: str = "",
             required: bool = False) -> List[Any]:
    value = payload.get(key)
    if value is None:
        if required:
            raise RequestValidationError(f"{_join(path, key)} is required")
        return []
    if not isinstance(value, list):
        raise RequestValidationError(f"{_join(path, key)} must be an array")
    return value


def get_number(payload: Mapping[str, Any], key: str, path: str = "",
               required: bool = False, default: float | None = None) -> float | None:
    value = payload.get(key)
    if value is None:
        if required:
            raise RequestValidationError(f"{_join(path, key)} is required")
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RequestValidationError(f"{_join(path, key)} must be a number")
    return float(value)


def get_int(payload: Mapping[str, Any], key: str, path: str = "",
            required: bool = False, default: int | None = None) -> int | None:
    number = get_number(payload, key, path, required)
    if number is None:
        return default
    if not number.is_integer():
        raise RequestValidationError(f"{_join(path, key)} must be an integer")
    return int(number)


def get_bool(payload: Mapping[str, Any], key: str, path: str = "",
             default: bool | None = None) -> bool | None:
    value = payload.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise RequestValidationError(f"{_join(path, key)} must be a boolean")
    return value


def get_str(payload: Mapping[str, Any], key: str, path: str = "",
            required: bool = False) -> str | None:
    value = payload.get(key)
    if value is None:
        if required:
            raise RequestValidationError(f"{_join(path, key)} is required")
        return None
    if not isinstance(value, str):
        raise RequestValidationError(f"{_join(path, key)} must be a string")
    return value


def get_date(payload: Mapping[str, Any], key: str, path: str = "",
             required: bool = False) -> date | None:
    text = get_str(payload, key, path, required)
    if text is None:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise RequestValidationError(f"{_join(path, key)} must be an ISO date") from None


def get_enum(payload: Mapping[str, Any], key: str, enum_cls: Type[E], path: str = "",
             required: bool = False, default: E | None = None) -> E | None:
    text = get_str(payload, key, path, required)
    if text is None:
        return default
    try:
        return enum_cls(text)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise RequestValidationError(f"{_join(path, key)} must be one of: {allowed}") from None


def get_risk_flags(payload: Mapping[str, Any], key: str, path: str = "") -> tuple:
    flags = []
    for index, value in enumerate(get_list(payload, key, path)):
        try:
            flags.append(RiskFlag(value))
        except ValueError:
            raise RequestValidationError(
                f"{_join(path, key)}[{index}] is not a known risk flag") from None
    return tuple(flags)


# ----------------------------------------------------------------------------
# Model parsers
# ----------------------------------------------------------------------------

def parse_option_contract(value: Any, path: str, underlying: str | None = None) -> OptionContract:
    data = require_mapping(value, path)
    side = get_enum(data, 'side', OptionSide, path) or get_enum(data, 'type', OptionSide, path)
    if side is None:
        raise RequestValidationError(f"{_join(path, 'side')} is required")
    expiration = get_date(data, 'expiration', path, required=True)
    strike = get_number(data, 'strike', path, required=True)
    contract_underlying = get_str(data, 'underlying', path) or underlying or ""
    symbol = get_str(data, 'symbol', path) or (
        f"{contract_underlying}{expiration:%y%m%d}{side.value[0].upper()}{int(round(strike * 1000)):08d}"
    )
    return OptionContract(
        symbol=symbol,
        underlying=contract_underlying.upper(),
        side=side,
        expiration=expiration,
        strike=strike,
        bid=get_number(data, 'bid', path, default=0.0),
        ask=get_number(data, 'ask', path, default=0.0),
        open_interest=get_int(data, 'openInterest', path, default=0),
        volume=get_int(data, 'volume', path, default=0),
        implied_vol=get_number(data, 'impliedVol', path, default=0.0),
        last=get_number(data, 'last', path),
        delta=get_number(data, 'delta', path),
        theta=get_number(data, 'theta', path),
    )


def parse_contracts(values: List[Any], path: str, underlying: str | None = None) -> tuple:
    return tuple(parse_option_contract(item, f"{path}[{index}]", underlying)
                 for index, item in enumerate(values))


def parse_chain(value: Any, path: str) -> OptionChainSnapshot:
    """Chain object ``{underlying, asOf, contracts}`` or a bare contract array."""
    if isinstance(value, list):
        contracts = parse_contracts(value, path)
        underlying = contracts[0].underlying if contracts else ""
        return OptionChainSnapshot(underlying=underlying, as_of=datetime.now(), contracts=contracts)

    data = require_mapping(value, path)
    underlying = (get_str(data, 'underlying', path) or "").upper()
    as_of_text = get_str(data, 'asOf', path)
    try:
        as_of = datetime.fromisoformat(as_of_text.replace('Z', '+00:00')) if as_of_text else datetime.now()
    except ValueError:
        raise RequestValidationError(f"{_join(path, 'asOf')} must be an ISO timestamp") from None
    contracts = parse_contracts(get_list(data, 'contracts', path, required=True),
                                _join(path, 'contracts'), underlying)
    return OptionChainSnapshot(underlying=underlying, as_of=as_of, contracts=contracts)


def parse_fundamentals(value: Any, path: str) -> Fundamentals:
    data = require_mapping(value, path)
    return Fundamentals(
        symbol=(get_str(data, 'symbol', path) or "").upper(),
        company_name=get_str(data, 'companyName', path),
        market_cap=get_number(data, 'marketCap', path),
        sector=get_str(data, 'sector', path),
        industry=get_str(data, 'industry', path),
        beta=get_number(data, 'beta', path),
        pe_ratio=get_number(data, 'peRatio', path),
        gross_margin=get_number(data, 'grossMargin', path),
        operating_margin=get_number(data, 'operatingMargin', path),
        net_margin=get_number(data, 'netMargin', path),
        return_on_equity=get_number(data, 'returnOnEquity', path),
        return_on_assets=get_number(data, 'returnOnAssets', path),
        debt_to_equity=get_number(data, 'debtToEquity', path),
        current_ratio=get_number(data, 'currentRatio', path),
        quick_ratio=get_number(data, 'quickRatio', path),
    )


def parse_trend_metrics(value: Any, path: str) -> TrendMetrics:
    data = require_mapping(value, path)
    return TrendMetrics(
        price=get_number(data, 'price', path, required=True),
        dma50=get_number(data, 'dma50', path, required=True),
        dma100=get_number(data, 'dma100', path, required=True),
        dma200=get_number(data, 'dma200', path, required=True),
        distance_from_200dma_pct=get_number(data, 'distanceFrom200dmaPct', path, default=0.0),
    )


def parse_calendar(value: Any, path: str) -> CalendarSnapshot:
    data = require_mapping(value, path)
    earnings_path = _join(path, 'earnings')
    earnings = optional_mapping(data, 'earnings', path) or {}
    events = []
    for index, item in enumerate(get_list(data, 'macroEvents', path)):
        event_path = f"{_join(path, 'macroEvents')}[{index}]"
        event = require_mapping(item, event_path)
        event_type = get_str(event, 'type', event_path, required=True)
        if event_type not in ("CPI", "FOMC"):
            raise RequestValidationError(f"{event_path}.type must be CPI or FOMC")
        events.append(MacroEvent(
            type=event_type,
            date=get_date(event, 'date', event_path),
            label=get_str(event, 'label', event_path) or event_type,
        ))
    return CalendarSnapshot(
        symbol=(get_str(data, 'symbol', path) or "").upper(),
        earnings=EarningsInfo(
            earnings_date=get_date(earnings, 'earningsDate', earnings_path),
            days_to_earnings=get_int(earnings, 'daysToEarnings', earnings_path),
        ),
        macro_events=tuple(events),
    )


def parse_volatility(value: Any, path: str) -> VolatilityMetrics:
    data = require_mapping(value, path)
    return VolatilityMetrics(
        iv=get_number(data, 'iv', path),
        iv_change_rate=get_number(data, 'ivChangeRate', path),
        iv_regime=get_enum(data, 'ivRegime', IvRegime, path, default=IvRegime.UNKNOWN),
    )


def parse_liquidity_result(value: Any, path: str) -> LiquidityGateResult:
    data = require_mapping(value, path)
    reasons = []
    for index, item in enumerate(get_list(data, 'reasons', path)):
        reason_path = f"{_join(path, 'reasons')}[{index}]"
        reason = require_mapping(item, reason_path)
        code = get_enum(reason, 'code', LiquidityReasonCode, reason_path, required=True)
        reasons.append(LiquidityDisqualification(
            code=code,
            message=get_str(reason, 'message', reason_path) or code.value,
        ))
    if get_bool(data, 'passed', path) is False and not reasons:
        raise RequestValidationError(f"{path}.passed is false but no reasons were given")

    diagnostics = optional_mapping(data, 'diagnostics', path) or {}
    diagnostics_path = _join(path, 'diagnostics')
    return LiquidityGateResult(
        reasons=tuple(reasons),
        diagnostics=LiquidityDiagnostics(
            avg_daily_volume=get_number(diagnostics, 'avgDailyVolume', diagnostics_path),
            evaluated_strike=get_number(diagnostics, 'evaluatedStrike', diagnostics_path),
            evaluated_spread_pct=get_number(diagnostics, 'evaluatedSpreadPct', diagnostics_path),
            evaluated_open_interest=get_int(diagnostics, 'evaluatedOpenInterest', diagnostics_path),
        ),
    )


def parse_strike_candidate(value: Any, path: str) -> StrikeCandidate:
    data = require_mapping(value, path)
    try:
        return StrikeCandidate(
            strategy=get_enum(data, 'strategy', StrategyType, path, required=True),
            short_strike=get_number(data, 'shortStrike', path, required=True),
            long_strike=get_number(data, 'longStrike', path),
            credit=get_number(data, 'credit', path, default=0.0),
            max_loss=get_number(data, 'maxLoss', path, default=0.0),
            breakeven=get_number(data, 'breakeven', path, default=0.0),
            theta_per_day=get_number(data, 'thetaPerDay', path, default=0.0),
            pop=get_number(data, 'pop', path, default=0.0),
            short_delta=get_number(data, 'shortDelta', path),
            expiration=get_date(data, 'expiration', path),
            short_implied_vol=get_number(data, 'shortImpliedVol', path),
        )
    except RequestValidationError:
        raise
    except ValueError as e:
        raise RequestValidationError(f"{path}: {e}") from e


def parse_score_breakdown(value: Any, path: str) -> ScoreBreakdown:
    data = require_mapping(value, path)
    try:
        return ScoreBreakdown.from_parts(
            fundamentals=get_int(data, 'fundamentals', path, default=0),
            liquidity=get_int(data, 'liquidity', path, default=0),
            volatility=get_int(data, 'volatility', path, default=0),
            trend=get_int(data, 'trend', path, default=0),
            event_risk=get_int(data, 'eventRisk', path, default=0),
        )
    except ValueError as e:
        raise RequestValidationError(f"{path}: {e}") from e


def parse_expiration_candidate(value: Any, path: str) -> ExpirationCandidate:
    data = require_mapping(value, path)
    return ExpirationCandidate(
        expiration=get_date(data, 'expiration', path, required=True),
        dte=get_int(data, 'dte', path, required=True),
        theta_per_day=get_number(data, 'thetaPerDay', path, default=0.0),
        credit=get_number(data, 'credit', path, default=0.0),
        max_loss=get_number(data, 'maxLoss', path, default=0.0),
        strategy=get_enum(data, 'strategy', StrategyType, path, required=True),
        risk_flags=get_risk_flags(data, 'riskFlags', path),
    )


def parse_position(value: Any, path: str) -> PositionExposure:
    data = require_mapping(value, path)
    ticker = get_str(data, 'ticker', path, required=True)
    return PositionExposure(
        ticker=ticker.strip().upper(),
        collateral=get_number(data, 'collateral', path, required=True),
        sector=get_str(data, 'sector', path),
        beta=get_number(data, 'beta', path),
    )


def config_section(payload: Mapping[str, Any], key: str = 'config', path: str = "") -> Dict[str, Any]:
    """Optional config object converted to the snake_case keys ``from_dict`` expects."""
    section = optional_mapping(payload, key, path)
    return snake_keys(section) if section else {}
