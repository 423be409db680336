"""Strike selection for credit strategies.

Selects a short strike (and, for spreads, a paired long strike) from an option
chain under OTM, delta, liquidity and credit constraints. Every rejection is
returned as a reason with a human-readable message.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Sequence, Tuple

from ..models.candidates import (
    StrikeCandidate,
    StrikeFinderReason,
    StrikeReasonCode,
    StrikeSearchDiagnostic,
)
from ..models.option import OptionChainSnapshot, OptionContract
from ..models.types import OptionSide, StrategyType
from ..utils.error_handling import clamp

logger = logging.getLogger("credit_screener.strike_finder")

DELTA_TIE_RESOLUTION = 6


@dataclass(frozen=True)
class StrategyThresholds:
    """OTM and delta bands for one strategy.

    OTM percentages are fractions of the underlying price (0.05 = 5%).
    Deltas are absolute values.
    """

    min_otm_pct: float
    max_otm_pct: float
    target_delta: float
    delta_min: float
    delta_max: float

    @property
    def otm_band(self) -> Tuple[float, float]:
        return (self.min_otm_pct, self.max_otm_pct)

    @property
    def delta_band(self) -> Tuple[float, float]:
        return (self.delta_min, self.delta_max)


DEFAULT_STRATEGY_THRESHOLDS: Dict[StrategyType, StrategyThresholds] = {
    StrategyType.CSP: StrategyThresholds(0.05, 0.20, 0.25, 0.15, 0.30),
    StrategyType.PCS: StrategyThresholds(0.05, 0.20, 0.20, 0.18, 0.25),
    StrategyType.CCS: StrategyThresholds(0.05, 0.20, 0.20, 0.15, 0.25),
    StrategyType.CC: StrategyThresholds(0.03, 0.15, 0.25, 0.15, 0.35),
}


class StrikeFinderConfig:
    """Configuration for strike selection constraints."""

    def __init__(
        self,
        thresholds: Dict[StrategyType, StrategyThresholds] | None = None,
        allow_atm: bool = False,
        min_short_bid: float = 0.10,
        max_spread_pct: float = 0.25,
        min_open_interest: int = 100,
        min_volume: int = 1,
        spread_width_min: float = 3.0,
        spread_width_max: float = 10.0,
        min_credit: float = 0.10,
        min_credit_pct: float = 0.10,
    ):
        """Initialize strike finder configuration.

        Args:
            thresholds: Per-strategy OTM/delta bands (missing strategies use defaults)
            allow_atm: Accept at-the-money or in-the-money short strikes
            min_short_bid: Minimum bid on the short contract
            max_spread_pct: Max bid-ask spread of the short contract as fraction of mid
            min_open_interest: Minimum open interest on the short contract
            min_volume: Minimum daily volume on the short contract
            spread_width_min: Minimum distance between short and long strikes
            spread_width_max: Maximum distance between short and long strikes
            min_credit: Absolute credit floor per share
            min_credit_pct: Credit-to-width floor for spreads (0.10 = 10%)
        """
        self.thresholds = dict(DEFAULT_STRATEGY_THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)
        self.allow_atm = allow_atm
        self.min_short_bid = min_short_bid
        self.max_spread_pct = max_spread_pct
        self.min_open_interest = min_open_interest
        self.min_volume = min_volume
        self.spread_width_min = spread_width_min
        self.spread_width_max = spread_width_max
        self.min_credit = min_credit
        self.min_credit_pct = min_credit_pct

    def thresholds_for(self, strategy: StrategyType) -> StrategyThresholds:
        return self.thresholds[strategy]

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "StrikeFinderConfig":
        """Create StrikeFinderConfig from dictionary (e.g., from YAML).

        Per-strategy overrides live under ``strategies`` keyed by strategy code;
        keys omitted there keep the default band for that strategy.

        Example:
            >>> StrikeFinderConfig.from_dict({
            >>>     'strategies': {'PCS': {'target_delta': 0.22}},
            >>>     'min_credit': 0.25,
            >>> })
        """
        thresholds = {}
        for code, overrides in (config.get('strategies') or {}).items():
            strategy = StrategyType(code)
            thresholds[strategy] = replace(DEFAULT_STRATEGY_THRESHOLDS[strategy], **overrides)

        return cls(
            thresholds=thresholds,
            allow_atm=config.get('allow_atm', False),
            min_short_bid=config.get('min_short_bid', 0.10),
            max_spread_pct=config.get('max_spread_pct', 0.25),
            min_open_interest=config.get('min_open_interest', 100),
            min_volume=config.get('min_volume', 1),
            spread_width_min=config.get('spread_width_min', 3.0),
            spread_width_max=config.get('spread_width_max', 10.0),
            min_credit=config.get('min_credit', 0.10),
            min_credit_pct=config.get('min_credit_pct', 0.10),
        )


def is_valid_otm(otm_pct: float, thresholds: StrategyThresholds, allow_atm: bool) -> bool:
    """OTM percent inside the strategy band; ATM/ITM rejected unless allowed."""
    if not allow_atm and otm_pct <= 0:
        return False
    return thresholds.min_otm_pct <= otm_pct <= thresholds.max_otm_pct


def in_delta_band(delta: float | None, thresholds: StrategyThresholds) -> bool:
    if delta is None:
        return False
    return thresholds.delta_min <= abs(delta) <= thresholds.delta_max


def passes_contract_liquidity(contract: OptionContract, config: StrikeFinderConfig) -> bool:
    """Liquidity floor on the individual short contract."""
    spread_pct = contract.spread_pct
    return (
        contract.bid >= config.min_short_bid
        and spread_pct is not None
        and spread_pct <= config.max_spread_pct
        and contract.open_interest >= config.min_open_interest
        and contract.volume >= config.min_volume
    )


def _short_sort_key(contract: OptionContract, target_delta: float):
    # Equal delta distances (to 1e-6) fall through to higher bid, then tighter spread
    distance = round(abs(abs(contract.delta) - target_delta), DELTA_TIE_RESOLUTION)
    spread_pct = contract.spread_pct if contract.spread_pct is not None else float('inf')
    return (distance, -contract.bid, spread_pct)


def select_short_strike(
    contracts: Sequence[OptionContract],
    underlying_price: float,
    side: OptionSide,
    thresholds: StrategyThresholds,
    config: StrikeFinderConfig,
) -> Tuple[OptionContract | None, StrikeSearchDiagnostic]:
    """Pick the short contract closest to the target delta.

    Returns:
        Tuple of (selected contract or None, funnel diagnostic)
    """
    side_contracts = [c for c in contracts if c.side == side]
    otm_ok = [is_valid_otm(c.otm_pct(underlying_price), thresholds, config.allow_atm)
              for c in side_contracts]
    delta_ok = [in_delta_band(c.delta, thresholds) for c in side_contracts]
    liquidity_ok = [passes_contract_liquidity(c, config) for c in side_contracts]

    survivors = [
        c for c, otm, delta, liquid in zip(side_contracts, otm_ok, delta_ok, liquidity_ok)
        if otm and delta and liquid
    ]

    diagnostic = StrikeSearchDiagnostic(
        side_contracts=len(side_contracts),
        otm_matches=sum(otm_ok),
        delta_matches=sum(delta_ok),
        liquidity_matches=sum(liquidity_ok),
        survivors=len(survivors),
    )

    if not survivors:
        return None, diagnostic

    best = min(survivors, key=lambda c: _short_sort_key(c, thresholds.target_delta))
    return best, diagnostic


def select_long_strike(
    contracts: Sequence[OptionContract],
    short: OptionContract,
    width_min: float,
    width_max: float,
) -> OptionContract | None:
    """Pick the protective leg nearest the middle of the width range.

    The long leg must share the short leg's side and expiration and sit
    further OTM (below the short for puts, above it for calls).
    """
    target_distance = (width_min + width_max) / 2
    best = None
    best_gap = None

    for contract in contracts:
        if contract.side != short.side or contract.expiration != short.expiration:
            continue
        if short.side == OptionSide.PUT and contract.strike >= short.strike:
            continue
        if short.side == OptionSide.CALL and contract.strike <= short.strike:
            continue

        distance = abs(contract.strike - short.strike)
        if not width_min <= distance <= width_max:
            continue

        gap = abs(distance - target_distance)
        if best_gap is None or gap < best_gap:
            best = contract
            best_gap = gap

    return best


def _rejected(strategy: StrategyType, code: StrikeReasonCode, message: str,
              short: OptionContract | None = None,
              diagnostic: StrikeSearchDiagnostic | None = None) -> StrikeCandidate:
    return StrikeCandidate(
        strategy=strategy,
        short_strike=short.strike if short else 0.0,
        credit=0.0,
        max_loss=0.0,
        breakeven=0.0,
        theta_per_day=0.0,
        pop=0.0,
        short_delta=short.delta if short else None,
        reasons=(StrikeFinderReason(code=code, message=message),),
        expiration=short.expiration if short else None,
        short_implied_vol=short.implied_vol if short else None,
        diagnostic=diagnostic,
    )


def build_candidate(
    strategy: StrategyType,
    short: OptionContract,
    long: OptionContract | None,
    config: StrikeFinderConfig,
    diagnostic: StrikeSearchDiagnostic | None = None,
) -> StrikeCandidate:
    """Compute trade economics for resolved legs and apply credit guardrails.

    Credit is per share: short bid minus long ask for spreads (floored at 0),
    else the short bid. Max loss is width minus credit for spreads, else
    short strike minus credit.
    """
    if long is not None:
        credit = max(short.bid - long.ask, 0.0)
        width = abs(short.strike - long.strike)
        max_loss = max(width - credit, 0.0)
        theta = (short.theta or 0.0) - (long.theta or 0.0)
    else:
        credit = short.bid
        width = 0.0
        max_loss = max(short.strike - credit, 0.0)
        theta = short.theta or 0.0

    if short.side == OptionSide.PUT:
        breakeven = short.strike - credit
    else:
        breakeven = short.strike + credit

    pop = 0.5 if short.delta is None else clamp(1 - abs(short.delta))

    reasons: List[StrikeFinderReason] = []
    if credit < config.min_credit:
        reasons.append(StrikeFinderReason(
            code=StrikeReasonCode.INSUFFICIENT_CREDIT,
            message=f"Credit {credit:.2f} below minimum {config.min_credit:.2f}.",
        ))
    if long is not None and width > 0 and credit / width < config.min_credit_pct:
        reasons.append(StrikeFinderReason(
            code=StrikeReasonCode.POOR_CREDIT_TO_WIDTH,
            message=(f"Credit-to-width {credit / width * 100:.1f}% below "
                     f"{config.min_credit_pct * 100:g}%."),
        ))

    return StrikeCandidate(
        strategy=strategy,
        short_strike=short.strike,
        long_strike=long.strike if long else None,
        credit=credit,
        max_loss=max_loss,
        breakeven=breakeven,
        theta_per_day=theta,
        pop=pop,
        short_delta=short.delta,
        reasons=tuple(reasons),
        expiration=short.expiration,
        short_implied_vol=short.implied_vol,
        diagnostic=diagnostic,
    )


def find_strike_candidate(
    chain: OptionChainSnapshot,
    underlying_price: float,
    strategy: StrategyType,
    config: StrikeFinderConfig | None = None,
) -> StrikeCandidate:
    """Resolve strikes for one strategy over a chain (usually one expiration).

    Args:
        chain: Option chain snapshot
        underlying_price: Current price of the underlying
        strategy: Strategy to build
        config: Selection constraints (defaults if None)

    Returns:
        StrikeCandidate; any reasons mean NO TRADE for this pair

    Example:
        >>> candidate = find_strike_candidate(chain.for_expiration(exp), 160.0,
        >>>                                   StrategyType.PCS)
        >>> if candidate.is_valid:
        >>>     print(candidate.short_strike, candidate.long_strike)
    """
    config = config or StrikeFinderConfig()

    if not chain.contracts:
        return _rejected(strategy, StrikeReasonCode.NO_TRADE, "No option contracts available.")

    thresholds = config.thresholds_for(strategy)
    short, diagnostic = select_short_strike(
        chain.contracts, underlying_price, strategy.side, thresholds, config
    )

    if short is None:
        summary = diagnostic.summary(thresholds.otm_band, thresholds.delta_band)
        logger.debug("%s %s: no short strike (%s)", chain.underlying, strategy.value, summary)
        return _rejected(
            strategy,
            StrikeReasonCode.NO_VALID_SHORT_STRIKE,
            f"No short strike meets OTM/delta/liquidity rules. {summary}",
            diagnostic=diagnostic,
        )

    if not strategy.is_spread:
        return build_candidate(strategy, short, None, config, diagnostic)

    long = select_long_strike(chain.contracts, short,
                              config.spread_width_min, config.spread_width_max)
    if long is None:
        logger.debug("%s %s: no long strike for short %s", chain.underlying,
                     strategy.value, short.strike)
        return _rejected(
            strategy,
            StrikeReasonCode.NO_VALID_LONG_STRIKE,
            (f"No long strike found between {config.spread_width_min:g} and "
             f"{config.spread_width_max:g} points from short strike."),
            short=short,
            diagnostic=diagnostic,
        )

    return build_candidate(strategy, short, long, config, diagnostic)
