"""Portfolio-level concentration checks across open or prospective positions."""

import logging
from typing import Any, Dict, List, Sequence

from ..models.portfolio import ConcentrationResult, PositionExposure
from ..models.types import RiskFlag, dedupe_flags

logger = logging.getLogger("credit_screener.concentration")

UNKNOWN_SECTOR = "Unknown"


class ConcentrationConfig:
    """Configuration for portfolio concentration limits."""

    def __init__(
        self,
        sector_max_pct: float = 0.25,
        max_positions_per_ticker: int = 1,
        correlated_sector_threshold: float = 0.40,
        high_beta_threshold: float = 2.0,
    ):
        """Initialize concentration configuration.

        Args:
            sector_max_pct: Sector share of collateral flagged as concentrated
            max_positions_per_ticker: Positions allowed per ticker
            correlated_sector_threshold: Sector share also flagged as correlated exposure
            high_beta_threshold: Beta at or above which a position is flagged
        """
        self.sector_max_pct = sector_max_pct
        self.max_positions_per_ticker = max_positions_per_ticker
        self.correlated_sector_threshold = correlated_sector_threshold
        self.high_beta_threshold = high_beta_threshold

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ConcentrationConfig":
        return cls(
            sector_max_pct=config.get('sector_max_pct', 0.25),
            max_positions_per_ticker=config.get('max_positions_per_ticker', 1),
            correlated_sector_threshold=config.get('correlated_sector_threshold', 0.40),
            high_beta_threshold=config.get('high_beta_threshold', 2.0),
        )


def normalize_sector(sector: str | None) -> str:
    if sector is None or not sector.strip():
        return UNKNOWN_SECTOR
    return sector.strip()


def evaluate_concentration_risk(
    positions: Sequence[PositionExposure],
    config: ConcentrationConfig | None = None,
) -> ConcentrationResult:
    """Evaluate sector, ticker and beta concentration for a set of positions.

    Args:
        positions: Open or prospective positions with collateral in dollars
        config: Concentration limits (defaults if None)

    Returns:
        ConcentrationResult with flags, collateral per sector and violation messages
    """
    config = config or ConcentrationConfig()
    flags: List[RiskFlag] = []
    violations: List[str] = []

    total_collateral = sum(position.collateral for position in positions)
    sector_exposure: Dict[str, float] = {}
    ticker_counts: Dict[str, int] = {}

    for position in positions:
        sector = normalize_sector(position.sector)
        sector_exposure[sector] = sector_exposure.get(sector, 0.0) + position.collateral
        ticker_counts[position.ticker] = ticker_counts.get(position.ticker, 0) + 1

        if position.beta is not None and position.beta >= config.high_beta_threshold:
            flags.append(RiskFlag.CORRELATED_EXPOSURE)
            violations.append(f"High beta exposure in {position.ticker} (beta {position.beta:.2f}).")

    for ticker, count in ticker_counts.items():
        if count > config.max_positions_per_ticker:
            flags.append(RiskFlag.CORRELATED_EXPOSURE)
            violations.append(f"Multiple positions in {ticker} (count {count}).")

    if total_collateral > 0:
        for sector, collateral in sector_exposure.items():
            pct = collateral / total_collateral
            if pct >= config.sector_max_pct:
                flags.append(RiskFlag.SECTOR_CONCENTRATION)
                violations.append(f"Sector {sector} at {pct * 100:.1f}% of exposure.")
            if pct >= config.correlated_sector_threshold:
                flags.append(RiskFlag.CORRELATED_EXPOSURE)

    if violations:
        logger.warning("Portfolio has %d concentration violations", len(violations))

    return ConcentrationResult(
        risk_flags=dedupe_flags(flags),
        sector_exposure=sector_exposure,
        violations=tuple(violations),
    )
