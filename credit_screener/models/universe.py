"""Universe build data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Tuple

from .types import ReasonSeverity, RecommendationProfile, UniverseSource


class UniverseReasonCode(str, Enum):
    INVALID_TICKER = "INVALID_TICKER"
    NON_US_LISTING = "NON_US_LISTING"
    ADR_OR_INTL = "ADR_OR_INTL"
    MEME_RISK = "MEME_RISK"
    LOW_AVG_VOLUME = "LOW_AVG_VOLUME"
    LOW_OPTIONS_LIQUIDITY = "LOW_OPTIONS_LIQUIDITY"
    UNKNOWN_OPTIONS_LIQUIDITY = "UNKNOWN_OPTIONS_LIQUIDITY"
    UNKNOWN_PROFILE = "UNKNOWN_PROFILE"


@dataclass(frozen=True)
class UniverseReason:
    code: UniverseReasonCode
    message: str
    severity: ReasonSeverity = ReasonSeverity.EXCLUDE


@dataclass(frozen=True)
class UniverseLiquidity:
    avg_daily_volume: float | None = None
    options_open_interest: int | None = None
    options_volume: int | None = None
    options_liquidity_status: Literal["KNOWN", "UNKNOWN"] = "UNKNOWN"


@dataclass(frozen=True)
class TickerMetadata:
    country: str | None = None
    exchange: str | None = None
    currency: str | None = None
    company_name: str | None = None
    liquidity: UniverseLiquidity = field(default_factory=UniverseLiquidity)


@dataclass(frozen=True)
class TickerDecision:
    """Snapshot of one ticker's universe screening, built once per run."""

    ticker: str
    normalized_ticker: str
    reasons: Tuple[UniverseReason, ...] = field(default_factory=tuple)
    metadata: TickerMetadata = field(default_factory=TickerMetadata)

    @property
    def is_excluded(self) -> bool:
        return any(reason.severity == ReasonSeverity.EXCLUDE for reason in self.reasons)

    @property
    def reason_messages(self) -> Tuple[str, ...]:
        return tuple(reason.message for reason in self.reasons)


@dataclass(frozen=True)
class UniverseResult:
    included: Tuple[TickerDecision, ...] = field(default_factory=tuple)
    excluded: Tuple[TickerDecision, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class UniverseBuildRequest:
    """Tickers to screen: a manual list, or an index list plus extra manual names."""

    source: UniverseSource = UniverseSource.MANUAL
    tickers: Tuple[str, ...] = field(default_factory=tuple)
    recommendation_profile: RecommendationProfile | None = None
