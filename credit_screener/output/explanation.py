"""Human-readable rationale and consolidated risk flags for a candidate."""

from dataclasses import dataclass, field
from typing import List, Tuple

from ..models.candidates import LiquidityGateResult, ScoreBreakdown, StrikeCandidate
from ..models.market import CalendarSnapshot, Fundamentals, TrendMetrics, VolatilityMetrics
from ..models.types import RiskFlag, dedupe_flags

MAX_BULLETS = 6
MIN_BULLETS = 3
DEFAULT_EARNINGS_HORIZON = 21

_COMPACT_UNITS = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K"))


@dataclass(frozen=True)
class ExplanationInput:
    volatility: VolatilityMetrics | None = None
    strike: StrikeCandidate | None = None
    underlying_price: float | None = None
    trade_dte: int | None = None
    liquidity: LiquidityGateResult | None = None
    fundamentals: Fundamentals | None = None
    trend: TrendMetrics | None = None
    calendar: CalendarSnapshot | None = None
    score: ScoreBreakdown | None = None
    risk_flags: Tuple[RiskFlag, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExplanationResult:
    why: Tuple[str, ...]
    risk_flags: Tuple[RiskFlag, ...]


def format_pct(fraction: float) -> str:
    return f"{fraction * 100:.0f}%"


def format_compact(value: float) -> str:
    """Short number notation with at most one decimal (1.5M, 2.3B, 950)."""
    magnitude = abs(value)
    for index, (divisor, suffix) in enumerate(_COMPACT_UNITS):
        if magnitude >= divisor:
            scaled = round(value / divisor, 1)
            # 999.95K rounds up into the next unit
            if abs(scaled) >= 1000 and index > 0:
                divisor, suffix = _COMPACT_UNITS[index - 1]
                scaled = round(value / divisor, 1)
            return f"{scaled:g}{suffix}"
    return f"{round(value, 1):g}"


def build_why_bullets(explanation_input: ExplanationInput) -> List[str]:
    """Organic bullets in display order, before capping and padding."""
    bullets: List[str] = []
    vol = explanation_input.volatility
    strike = explanation_input.strike
    price = explanation_input.underlying_price
    dte = explanation_input.trade_dte

    if vol is not None and vol.iv is not None:
        bullets.append(f"IV at {format_pct(vol.iv)} with {vol.iv_regime.value.lower()} trend.")

    if strike is not None:
        delta = f"{strike.short_delta:.2f}" if strike.short_delta is not None else "n/a"
        bullets.append(f"Short strike {strike.short_strike:g} at {delta} delta.")
        if price is not None and price > 0:
            otm_pct = abs((price - strike.short_strike) / price)
            bullets.append(f"Short strike {format_pct(otm_pct)} OTM.")

    if dte is not None:
        bullets.append(f"Targeting {dte} DTE window.")

    liquidity = explanation_input.liquidity
    if liquidity is not None and liquidity.diagnostics.avg_daily_volume is not None:
        volume = format_compact(liquidity.diagnostics.avg_daily_volume)
        bullets.append(f"Average daily volume {volume} shares.")

    fundamentals = explanation_input.fundamentals
    if fundamentals is not None and fundamentals.market_cap is not None:
        bullets.append(f"Market cap {format_compact(fundamentals.market_cap)}.")

    if explanation_input.trend is not None:
        distance = explanation_input.trend.distance_from_200dma_pct
        bullets.append(f"Price vs 200DMA: {format_pct(distance / 100)}.")

    calendar = explanation_input.calendar
    if calendar is not None:
        days = calendar.earnings.days_to_earnings
        if days is None:
            bullets.append("No upcoming earnings on calendar.")
        else:
            horizon = dte if dte is not None else DEFAULT_EARNINGS_HORIZON
            if days > horizon:
                bullets.append(f"No earnings within {horizon} days.")
            else:
                bullets.append(f"Earnings in {days} days.")

    return bullets


def build_explanation(explanation_input: ExplanationInput) -> ExplanationResult:
    """Build up to six ordered rationale bullets and the merged risk flags.

    Pads to at least three bullets with a score summary (when a score is
    available) and a baseline-filters sentence.

    Args:
        explanation_input: Upstream signals for one candidate

    Returns:
        ExplanationResult with bullets and de-duplicated risk flags
    """
    bullets = build_why_bullets(explanation_input)[:MAX_BULLETS]

    if len(bullets) < MIN_BULLETS and explanation_input.score is not None:
        bullets.append(f"Score {explanation_input.score.total}/100 with balanced breakdown.")
    if len(bullets) < MIN_BULLETS:
        bullets.append("Meets baseline filters for strategy evaluation.")

    implied: List[RiskFlag] = []
    calendar = explanation_input.calendar
    if calendar is not None:
        if calendar.macro_events:
            implied.append(RiskFlag.MACRO_EVENT)
        days = calendar.earnings.days_to_earnings
        dte = explanation_input.trade_dte
        if days is not None and dte is not None and days <= dte:
            implied.append(RiskFlag.EARNINGS_WITHIN_TRADE)

    return ExplanationResult(
        why=tuple(bullets),
        risk_flags=dedupe_flags(explanation_input.risk_flags, implied),
    )
