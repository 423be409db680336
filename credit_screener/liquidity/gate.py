"""Liquidity gate for a single ticker and expiration.

Checks stock volume, option bid/ask spread and open interest near the target
short strike. The gate is diagnostic: it reports every failing check and leaves
the decision to proceed to the caller.
"""

import logging
from typing import Any, Dict, List, Sequence

from ..models.candidates import (
    LiquidityDiagnostics,
    LiquidityDisqualification,
    LiquidityGateResult,
    LiquidityReasonCode,
)
from ..models.option import OptionContract

logger = logging.getLogger("credit_screener.liquidity")


class LiquidityGateConfig:
    """Configuration for liquidity gate thresholds."""

    def __init__(
        self,
        min_avg_daily_volume: float = 1_000_000,
        max_spread_pct: float = 0.05,
        min_open_interest: int = 500,
    ):
        """Initialize liquidity gate configuration.

        Args:
            min_avg_daily_volume: Minimum average daily share volume
            max_spread_pct: Max bid-ask spread as fraction of mid (0.05 = 5%)
            min_open_interest: Minimum open interest on the evaluated contract
        """
        self.min_avg_daily_volume = min_avg_daily_volume
        self.max_spread_pct = max_spread_pct
        self.min_open_interest = min_open_interest

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "LiquidityGateConfig":
        """Create LiquidityGateConfig from dictionary (e.g., from YAML)."""
        return cls(
            min_avg_daily_volume=config.get('min_avg_daily_volume', 1_000_000),
            max_spread_pct=config.get('max_spread_pct', 0.05),
            min_open_interest=config.get('min_open_interest', 500),
        )


def find_nearest_contract(
    contracts: Sequence[OptionContract],
    target_strike: float | None = None,
) -> OptionContract | None:
    """Pick the contract to evaluate.

    With a target strike, the contract whose strike is nearest (first wins on
    ties); without one, the highest open interest contract.
    """
    if not contracts:
        return None

    if target_strike is None:
        best = contracts[0]
        for contract in contracts[1:]:
            if contract.open_interest > best.open_interest:
                best = contract
        return best

    best = contracts[0]
    for contract in contracts[1:]:
        if abs(contract.strike - target_strike) < abs(best.strike - target_strike):
            best = contract
    return best


def evaluate_liquidity_gate(
    avg_daily_volume: float | None,
    contracts: Sequence[OptionContract],
    short_strike: float | None = None,
    config: LiquidityGateConfig | None = None,
) -> LiquidityGateResult:
    """Run the liquidity gate.

    Args:
        avg_daily_volume: Average daily stock volume, or None if unknown
        contracts: Option chain slice for one expiration
        short_strike: Target short strike, if already resolved
        config: Gate thresholds (defaults if None)

    Returns:
        LiquidityGateResult listing all failing checks
    """
    config = config or LiquidityGateConfig()
    reasons: List[LiquidityDisqualification] = []

    if avg_daily_volume is not None and avg_daily_volume < config.min_avg_daily_volume:
        reasons.append(LiquidityDisqualification(
            code=LiquidityReasonCode.LOW_STOCK_LIQUIDITY,
            message=f"Average volume {avg_daily_volume:,.0f} below {config.min_avg_daily_volume:,.0f}.",
        ))

    contract = find_nearest_contract(contracts, short_strike)
    spread_pct = contract.spread_pct if contract else None
    open_interest = contract.open_interest if contract else None

    if spread_pct is not None and spread_pct > config.max_spread_pct:
        reasons.append(LiquidityDisqualification(
            code=LiquidityReasonCode.WIDE_OPTIONS_SPREAD,
            message=(f"Options spread {spread_pct * 100:.2f}% exceeds "
                     f"{config.max_spread_pct * 100:g}%."),
        ))

    if open_interest is not None and open_interest < config.min_open_interest:
        reasons.append(LiquidityDisqualification(
            code=LiquidityReasonCode.LOW_OPEN_INTEREST,
            message=f"Open interest {open_interest} below {config.min_open_interest}.",
        ))

    if reasons:
        logger.debug(
            "Liquidity gate failed (strike %s): %s",
            contract.strike if contract else None,
            ", ".join(reason.code.value for reason in reasons),
        )

    return LiquidityGateResult(
        reasons=tuple(reasons),
        diagnostics=LiquidityDiagnostics(
            avg_daily_volume=avg_daily_volume,
            evaluated_strike=contract.strike if contract else None,
            evaluated_spread_pct=spread_pct,
            evaluated_open_interest=open_interest,
        ),
    )
