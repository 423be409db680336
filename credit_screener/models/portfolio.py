"""Position sizing and portfolio exposure data models."""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from .types import RiskFlag


@dataclass(frozen=True)
class PositionSizingInput:
    account_size: float
    required_collateral: float
    max_allocation_pct: float | None = None


@dataclass(frozen=True)
class PositionSizingResult:
    """Advisory allocation check; never blocks candidate generation."""

    required_collateral: float
    account_size: float
    allocation_pct: float
    max_allocation_pct: float
    within_limit: bool
    warning: str | None = None


@dataclass(frozen=True)
class PositionExposure:
    """An open or prospective position for portfolio-level risk checks."""

    ticker: str
    collateral: float
    sector: str | None = None
    beta: float | None = None


@dataclass(frozen=True)
class ConcentrationResult:
    risk_flags: Tuple[RiskFlag, ...]
    sector_exposure: Dict[str, float] = field(default_factory=dict)
    violations: Tuple[str, ...] = field(default_factory=tuple)
