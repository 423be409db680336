"""Per-trade allocation guardrail.

Sizing is advisory: a breach produces a warning for the caller and never
blocks candidate generation.
"""

import logging

from ..models.portfolio import PositionSizingInput, PositionSizingResult
from ..utils.error_handling import round_half_up

logger = logging.getLogger("credit_screener.position_sizing")

DEFAULT_MAX_ALLOCATION_PCT = 0.05


def evaluate_position_sizing(sizing_input: PositionSizingInput) -> PositionSizingResult:
    """Check a trade's collateral against the per-trade allocation limit.

    Args:
        sizing_input: Account size, required collateral and optional limit

    Returns:
        PositionSizingResult with allocation fraction and limit check

    Example:
        >>> result = evaluate_position_sizing(PositionSizingInput(
        >>>     account_size=100_000, required_collateral=6_000, max_allocation_pct=0.05
        >>> ))
        >>> result.warning
        'Allocation 6% exceeds 5% limit.'
    """
    max_allocation_pct = sizing_input.max_allocation_pct
    if max_allocation_pct is None:
        max_allocation_pct = DEFAULT_MAX_ALLOCATION_PCT

    if sizing_input.account_size > 0:
        allocation_pct = sizing_input.required_collateral / sizing_input.account_size
    else:
        allocation_pct = 0.0

    within_limit = allocation_pct <= max_allocation_pct
    warning = None
    if not within_limit:
        warning = (f"Allocation {round_half_up(allocation_pct * 100)}% exceeds "
                   f"{round_half_up(max_allocation_pct * 100)}% limit.")
        logger.debug("Sizing check: %s", warning)

    return PositionSizingResult(
        required_collateral=sizing_input.required_collateral,
        account_size=sizing_input.account_size,
        allocation_pct=allocation_pct,
        max_allocation_pct=max_allocation_pct,
        within_limit=within_limit,
        warning=warning,
    )
