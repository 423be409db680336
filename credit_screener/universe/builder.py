"""Universe construction: ticker normalization and hard exclusion rules.

Each ticker accumulates every applicable exclusion reason so the decision can
be explained. Provider lookups that fail degrade to "unknown" data instead of
raising; the allow_unknown_* flags decide whether unknown data excludes.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple

import requests

from ..data.validators import is_valid_ticker, normalize_tickers
from ..models.market import CompanyProfile, QuoteSnapshot
from ..models.types import ReasonSeverity, RecommendationProfile, UniverseSource
from ..models.universe import (
    TickerDecision,
    TickerMetadata,
    UniverseBuildRequest,
    UniverseLiquidity,
    UniverseReason,
    UniverseReasonCode,
    UniverseResult,
)
from ..providers.base import FundamentalsProvider, MarketDataProvider
from ..utils.error_handling import ProviderError

logger = logging.getLogger("credit_screener.universe")

DEFAULT_MEME_TICKERS = (
    "AMC", "GME", "BBBY", "BB", "KOSS", "NOK", "SNDL",
    "CLOV", "SPCE", "CVNA", "RIVN", "HOOD", "NKLA",
)

# Used when index constituents cannot be fetched
DEFAULT_RECOMMENDED = (
    "AAPL", "MSFT", "AMZN", "GOOGL", "META", "NVDA", "BRK.B", "JPM", "UNH", "XOM",
    "AVGO", "TSLA", "COST", "PEP", "AMD", "V", "MA", "PG", "HD", "KO",
)

US_COUNTRIES = frozenset({"us", "usa", "united states"})

PROVIDER_ERRORS = (ProviderError, requests.RequestException, ValueError)


class UniverseBuildConfig:
    """Configuration for universe hard filters."""

    def __init__(
        self,
        min_avg_daily_volume: float = 1_000_000,
        min_options_open_interest: int = 500,
        min_options_volume: int = 500,
        allow_unknown_options_liquidity: bool = True,
        use_options_snapshot: bool = False,
        allow_unknown_profile: bool = False,
        meme_tickers: Iterable[str] = DEFAULT_MEME_TICKERS,
    ):
        """Initialize universe configuration.

        Args:
            min_avg_daily_volume: Minimum average daily share volume
            min_options_open_interest: Minimum aggregate open interest across the chain
            min_options_volume: Minimum aggregate option volume across the chain
            allow_unknown_options_liquidity: Keep tickers whose option liquidity is unknown
            use_options_snapshot: Fetch the option chain to check aggregate liquidity
            allow_unknown_profile: Keep tickers without a company profile
            meme_tickers: Symbols always excluded as meme-risk
        """
        self.min_avg_daily_volume = min_avg_daily_volume
        self.min_options_open_interest = min_options_open_interest
        self.min_options_volume = min_options_volume
        self.allow_unknown_options_liquidity = allow_unknown_options_liquidity
        self.use_options_snapshot = use_options_snapshot
        self.allow_unknown_profile = allow_unknown_profile
        self.meme_tickers: FrozenSet[str] = frozenset(t.upper() for t in meme_tickers)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "UniverseBuildConfig":
        """Create UniverseBuildConfig from dictionary (e.g., from YAML)."""
        return cls(
            min_avg_daily_volume=config.get('min_avg_daily_volume', 1_000_000),
            min_options_open_interest=config.get('min_options_open_interest', 500),
            min_options_volume=config.get('min_options_volume', 500),
            allow_unknown_options_liquidity=config.get('allow_unknown_options_liquidity', True),
            use_options_snapshot=config.get('use_options_snapshot', False),
            allow_unknown_profile=config.get('allow_unknown_profile', False),
            meme_tickers=config.get('meme_tickers') or DEFAULT_MEME_TICKERS,
        )


def is_us_listing(country: str | None) -> bool:
    if not country:
        return False
    return country.strip().lower() in US_COUNTRIES


def is_adr_or_international(profile: CompanyProfile) -> bool:
    """ADR flag, a non-USD trading currency, or an OTC venue."""
    if profile.is_adr:
        return True
    if profile.currency and profile.currency.upper() != "USD":
        return True
    if profile.exchange and "OTC" in profile.exchange.upper():
        return True
    return False


def resolve_source_tickers(
    request: UniverseBuildRequest,
    fundamentals_provider: FundamentalsProvider | None = None,
) -> List[str]:
    """Raw ticker list for the request, before normalization."""
    manual = list(request.tickers)
    if request.source != UniverseSource.RECOMMENDED:
        return manual

    profile = request.recommendation_profile or RecommendationProfile.SP500
    constituents: List[str] = []
    if fundamentals_provider is not None:
        try:
            constituents = list(fundamentals_provider.get_index_constituents(profile))
        except PROVIDER_ERRORS as e:
            logger.warning("Index constituents for %s unavailable: %s", profile.value, e)

    if not constituents:
        logger.info("Using static recommended list (%d tickers)", len(DEFAULT_RECOMMENDED))
        constituents = list(DEFAULT_RECOMMENDED)

    return constituents + manual


def _lookup_listing(
    ticker: str,
    provider: FundamentalsProvider | None,
) -> Tuple[CompanyProfile | None, QuoteSnapshot | None]:
    if provider is None:
        return None, None
    try:
        return provider.get_company_profile(ticker), provider.get_quote_snapshot(ticker)
    except PROVIDER_ERRORS as e:
        logger.warning("Profile lookup failed for %s: %s", ticker, e)
        return None, None


def _lookup_options_liquidity(
    ticker: str,
    provider: MarketDataProvider | None,
) -> Tuple[int | None, int | None]:
    """Aggregate open interest and volume across the chain; (None, None) if unknown."""
    if provider is None:
        return None, None
    try:
        chain = provider.get_option_chain_snapshot(ticker)
    except PROVIDER_ERRORS as e:
        logger.warning("Options snapshot failed for %s: %s", ticker, e)
        return None, None
    open_interest = sum(contract.open_interest for contract in chain.contracts)
    volume = sum(contract.volume for contract in chain.contracts)
    return open_interest, volume


def evaluate_ticker(
    ticker: str,
    config: UniverseBuildConfig,
    fundamentals_provider: FundamentalsProvider | None = None,
    market_provider: MarketDataProvider | None = None,
) -> TickerDecision:
    """Apply every exclusion rule to one normalized ticker."""
    reasons: List[UniverseReason] = []

    def exclude(code: UniverseReasonCode, message: str) -> None:
        reasons.append(UniverseReason(code=code, message=message, severity=ReasonSeverity.EXCLUDE))

    valid = is_valid_ticker(ticker)
    if not valid:
        exclude(UniverseReasonCode.INVALID_TICKER, "Ticker format is invalid.")

    if ticker in config.meme_tickers:
        exclude(UniverseReasonCode.MEME_RISK, "Ticker is flagged as meme-risk.")

    profile, quote = _lookup_listing(ticker, fundamentals_provider) if valid else (None, None)

    if profile is None and not config.allow_unknown_profile:
        exclude(UniverseReasonCode.UNKNOWN_PROFILE, "Company profile unavailable.")

    if profile is not None:
        if not is_us_listing(profile.country):
            exclude(UniverseReasonCode.NON_US_LISTING,
                    f"Non-US listing detected ({profile.country or 'unknown'}).")
        if is_adr_or_international(profile):
            exclude(UniverseReasonCode.ADR_OR_INTL, "ADR or international listing detected.")

    avg_volume = quote.avg_volume if quote is not None else None
    if avg_volume is not None and avg_volume < config.min_avg_daily_volume:
        exclude(UniverseReasonCode.LOW_AVG_VOLUME,
                f"Average volume below threshold ({avg_volume:.0f}).")

    options_open_interest = options_volume = None
    if config.use_options_snapshot and valid:
        options_open_interest, options_volume = _lookup_options_liquidity(ticker, market_provider)

    status = "UNKNOWN" if options_open_interest is None else "KNOWN"
    if status == "KNOWN" and (options_open_interest < config.min_options_open_interest
                              or options_volume < config.min_options_volume):
        exclude(UniverseReasonCode.LOW_OPTIONS_LIQUIDITY, "Options liquidity below threshold.")
    if status == "UNKNOWN" and not config.allow_unknown_options_liquidity:
        exclude(UniverseReasonCode.UNKNOWN_OPTIONS_LIQUIDITY, "Options liquidity data unavailable.")

    return TickerDecision(
        ticker=ticker,
        normalized_ticker=ticker,
        reasons=tuple(reasons),
        metadata=TickerMetadata(
            country=profile.country if profile else None,
            exchange=profile.exchange if profile else None,
            currency=profile.currency if profile else None,
            company_name=profile.company_name if profile else None,
            liquidity=UniverseLiquidity(
                avg_daily_volume=avg_volume,
                options_open_interest=options_open_interest,
                options_volume=options_volume,
                options_liquidity_status=status,
            ),
        ),
    )


def build_universe(
    request: UniverseBuildRequest,
    fundamentals_provider: FundamentalsProvider | None = None,
    market_provider: MarketDataProvider | None = None,
    config: UniverseBuildConfig | None = None,
) -> UniverseResult:
    """Normalize the requested tickers and split them into included/excluded.

    Args:
        request: Ticker source and manual tickers
        fundamentals_provider: Profile/quote/constituent source (None = all unknown)
        market_provider: Option chain source, used when use_options_snapshot is set
        config: Hard-filter thresholds (defaults if None)

    Returns:
        UniverseResult with decisions in sorted ticker order

    Example:
        >>> result = build_universe(UniverseBuildRequest(tickers=("aapl", "GME")), fmp)
        >>> [d.ticker for d in result.excluded]
        ['GME']
    """
    config = config or UniverseBuildConfig()
    tickers = normalize_tickers(resolve_source_tickers(request, fundamentals_provider))

    included: List[TickerDecision] = []
    excluded: List[TickerDecision] = []
    for ticker in tickers:
        decision = evaluate_ticker(ticker, config, fundamentals_provider, market_provider)
        if decision.is_excluded:
            logger.debug("Excluded %s: %s", ticker, " ".join(decision.reason_messages))
            excluded.append(decision)
        else:
            included.append(decision)

    logger.info("Universe built: %d included, %d excluded", len(included), len(excluded))
    return UniverseResult(included=tuple(included), excluded=tuple(excluded))
