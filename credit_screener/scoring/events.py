"""Event risk scoring from earnings proximity and the macro calendar."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Tuple

from ..models.market import CalendarSnapshot
from ..models.types import RiskFlag, dedupe_flags


class EventScoreConfig:
    """Penalties applied to the event-risk multiplier."""

    def __init__(
        self,
        earnings_penalty: float = 0.4,
        macro_penalty: float = 0.2,
        macro_horizon_days: int = 14,
    ):
        self.earnings_penalty = earnings_penalty
        self.macro_penalty = macro_penalty
        self.macro_horizon_days = macro_horizon_days

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "EventScoreConfig":
        return cls(
            earnings_penalty=config.get('earnings_penalty', 0.4),
            macro_penalty=config.get('macro_penalty', 0.2),
            macro_horizon_days=config.get('macro_horizon_days', 14),
        )


@dataclass(frozen=True)
class EventScoreResult:
    score_multiplier: float
    risk_flags: Tuple[RiskFlag, ...] = field(default_factory=tuple)


def within_horizon(days_to_event: int | None, horizon: int) -> bool:
    if days_to_event is None:
        return False
    return 0 <= days_to_event <= horizon


def earnings_within_trade(calendar: CalendarSnapshot | None, trade_dte: int | None) -> bool:
    """True when the next earnings date lands on or before expiration."""
    if calendar is None or trade_dte is None:
        return False
    return within_horizon(calendar.earnings.days_to_earnings, trade_dte)


def macro_events_within(calendar: CalendarSnapshot | None, horizon_days: int,
                        today: date | None = None) -> bool:
    """True when any macro event falls inside the horizon.

    Events without a date are assumed to be inside the horizon.
    """
    if calendar is None or not calendar.macro_events:
        return False
    today = today or date.today()
    for event in calendar.macro_events:
        if event.date is None:
            return True
        if within_horizon((event.date - today).days, horizon_days):
            return True
    return False


def score_event_risk(
    base_flags: Iterable[RiskFlag],
    calendar: CalendarSnapshot | None,
    trade_dte: int | None,
    config: EventScoreConfig | None = None,
    today: date | None = None,
) -> EventScoreResult:
    """Compute the event-risk multiplier and flags.

    Args:
        base_flags: Flags already attached upstream
        calendar: Calendar snapshot for the ticker (None if unavailable)
        trade_dte: Days to expiration of the trade
        config: Penalties (defaults if None)
        today: Reference date for macro event distances

    Returns:
        EventScoreResult with multiplier floored at 0
    """
    config = config or EventScoreConfig()
    added = []
    multiplier = 1.0

    if earnings_within_trade(calendar, trade_dte):
        added.append(RiskFlag.EARNINGS_WITHIN_TRADE)
        multiplier -= config.earnings_penalty

    if macro_events_within(calendar, config.macro_horizon_days, today):
        added.append(RiskFlag.MACRO_EVENT)
        multiplier -= config.macro_penalty

    return EventScoreResult(
        score_multiplier=max(0.0, multiplier),
        risk_flags=dedupe_flags(base_flags, added),
    )
