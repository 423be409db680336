"""Qualify request/response data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Tuple, Union

from .candidates import TradeCandidate
from .portfolio import PositionSizingResult
from .types import RecommendationProfile, UniverseSource


@dataclass(frozen=True)
class QualifyRequest:
    """One qualify run: where tickers come from, account size and preferences."""

    account_size: float
    source: UniverseSource = UniverseSource.MANUAL
    tickers: Tuple[str, ...] = field(default_factory=tuple)
    recommendation_profile: RecommendationProfile | None = None
    prefer_defined_risk: bool | None = None
    max_per_trade_pct: float | None = None
    max_candidates: int | None = None


@dataclass(frozen=True)
class QualifiedCandidate:
    """Best trade for one ticker plus its sizing check."""

    ticker: str
    candidate: TradeCandidate
    sizing: PositionSizingResult
    kind: Literal["qualified"] = field(default="qualified", init=False)


@dataclass(frozen=True)
class DisqualifiedTicker:
    ticker: str
    reasons: Tuple[str, ...]
    kind: Literal["disqualified"] = field(default="disqualified", init=False)


# Per-ticker orchestrator result, discriminated by ``kind``.
TickerOutcome = Union[QualifiedCandidate, DisqualifiedTicker]


@dataclass(frozen=True)
class QualifyResponse:
    """Ranked candidates and disqualifications for one run.

    universe_size counts every ticker the universe resolved to, included or
    excluded, before candidates are truncated.
    """

    generated_at: datetime
    candidates: Tuple[QualifiedCandidate, ...] = field(default_factory=tuple)
    disqualified: Tuple[DisqualifiedTicker, ...] = field(default_factory=tuple)
    universe_size: int = 0
