"""Financial Modeling Prep client for fundamentals, profiles, quotes and index lists.

Requires an API key (``FMP_API_KEY``). Responses are cached through an
injected cache: fundamentals and profiles for 12 hours, index constituents
for 24 hours.
"""

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from ..models.market import CompanyProfile, Fundamentals, QuoteSnapshot
from ..models.types import RecommendationProfile
from ..utils.cache import Cache, cached_call
from ..utils.error_handling import (
    ConfigurationError,
    ProviderError,
    RetryableProviderError,
    retry_with_backoff,
)
from .base import (
    BASE_DELAY_SECONDS,
    CONSTITUENTS_TTL_SECONDS,
    DEFAULT_MAX_RETRIES,
    FUNDAMENTALS_TTL_SECONDS,
    MAX_JITTER_SECONDS,
    coerce_number,
    coerce_string,
    first_number,
    request_json,
)

logger = logging.getLogger("credit_screener.providers.fmp")

DEFAULT_BASE_URL = "https://financialmodelingprep.com"

CONSTITUENT_PATHS = {
    RecommendationProfile.SP500: "/api/v3/sp500_constituent",
    RecommendationProfile.NASDAQ: "/api/v3/nasdaq_constituent",
}


class FmpClient:
    """Financial Modeling Prep REST client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        cache: Optional[Cache] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize FMP client.

        Args:
            api_key: API key; falls back to ``FMP_API_KEY``
            base_url: API root; falls back to ``FMP_BASE_URL``, then the public endpoint
            session: Optional ``requests.Session`` for connection reuse/testing
            cache: Optional TTL cache shared across providers
            max_retries: Retries after the first attempt for transient failures
            timeout: Per-request timeout in seconds
            sleep: Sleep function used between retries (injectable for tests)

        Raises:
            ConfigurationError: If no API key is available
        """
        self.api_key = api_key or os.getenv("FMP_API_KEY")
        if not self.api_key:
            raise ConfigurationError("FMP API key is required (set FMP_API_KEY).")
        self.base_url = (base_url or os.getenv("FMP_BASE_URL") or DEFAULT_BASE_URL).rstrip('/')
        self.session = session or requests.Session()
        self.cache = cache
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep

    def _get(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        query = dict(params or {})
        query['apikey'] = self.api_key

        @retry_with_backoff(
            max_retries=self.max_retries,
            base_delay=BASE_DELAY_SECONDS,
            max_jitter=MAX_JITTER_SECONDS,
            sleep=self._sleep,
        )
        def fetch():
            return request_json(
                self.session,
                f"{self.base_url}{path}",
                provider="FMP",
                params=query,
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )

        return fetch()

    def _get_rows(self, path: str, params: Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
        payload = self._get(path, params)
        if not isinstance(payload, list):
            return []
        return [row for row in payload if isinstance(row, dict)]

    def _first_row_or_empty(self, path: str) -> Dict[str, Any]:
        """First row of a list endpoint; a permanently failing auxiliary endpoint yields {}.

        Transient failures still raise once retries are exhausted, so a
        partial result is never cached.
        """
        try:
            rows = self._get_rows(path)
        except RetryableProviderError:
            raise
        except ProviderError as e:
            logger.warning("FMP request %s failed, continuing without it: %s", path, e)
            return {}
        return rows[0] if rows else {}

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        """Merge profile, TTM key metrics and TTM ratios into Fundamentals.

        Metrics a source cannot supply are None.
        """
        symbol = symbol.upper()

        def fetch() -> Fundamentals:
            profile = self._first_row_or_empty(f"/api/v3/profile/{symbol}")
            metrics = self._first_row_or_empty(f"/api/v3/key-metrics-ttm/{symbol}")
            ratios = self._first_row_or_empty(f"/api/v3/ratios-ttm/{symbol}")

            return Fundamentals(
                symbol=symbol,
                company_name=coerce_string(profile.get('companyName')),
                market_cap=first_number(profile.get('mktCap'), profile.get('marketCap')),
                sector=coerce_string(profile.get('sector')),
                industry=coerce_string(profile.get('industry')),
                beta=coerce_number(profile.get('beta')),
                pe_ratio=first_number(profile.get('pe'), profile.get('peRatio')),
                gross_margin=coerce_number(ratios.get('grossProfitMarginTTM')),
                operating_margin=coerce_number(ratios.get('operatingProfitMarginTTM')),
                net_margin=coerce_number(ratios.get('netProfitMarginTTM')),
                return_on_equity=first_number(metrics.get('roeTTM'), ratios.get('returnOnEquityTTM')),
                return_on_assets=first_number(metrics.get('roaTTM'), ratios.get('returnOnAssetsTTM')),
                debt_to_equity=first_number(metrics.get('debtToEquityTTM'),
                                            ratios.get('debtEquityRatioTTM')),
                current_ratio=first_number(metrics.get('currentRatioTTM'),
                                           ratios.get('currentRatioTTM')),
                quick_ratio=first_number(metrics.get('quickRatioTTM'), ratios.get('quickRatioTTM')),
            )

        return cached_call(self.cache, f"fundamentals:{symbol}", FUNDAMENTALS_TTL_SECONDS, fetch)

    def get_company_profile(self, symbol: str) -> CompanyProfile | None:
        """Listing metadata, or None when FMP has no profile for the symbol."""
        symbol = symbol.upper()

        def fetch() -> CompanyProfile | None:
            rows = self._get_rows(f"/api/v3/profile/{symbol}")
            if not rows:
                return None
            row = rows[0]
            is_adr = row.get('isAdr')
            return CompanyProfile(
                symbol=symbol,
                company_name=coerce_string(row.get('companyName')),
                country=coerce_string(row.get('country')),
                exchange=coerce_string(row.get('exchangeShortName')) or coerce_string(row.get('exchange')),
                currency=coerce_string(row.get('currency')),
                is_adr=is_adr if isinstance(is_adr, bool) else None,
                sector=coerce_string(row.get('sector')),
            )

        return cached_call(self.cache, f"profile:{symbol}", FUNDAMENTALS_TTL_SECONDS, fetch)

    def get_quote_snapshot(self, symbol: str) -> QuoteSnapshot | None:
        """Delayed quote with average volume; not cached."""
        symbol = symbol.upper()
        rows = self._get_rows(f"/api/v3/quote/{symbol}")
        if not rows:
            return None
        row = rows[0]
        return QuoteSnapshot(
            symbol=symbol,
            price=coerce_number(row.get('price')),
            avg_volume=coerce_number(row.get('avgVolume')),
            volume=coerce_number(row.get('volume')),
        )

    def get_index_constituents(self, profile: RecommendationProfile) -> List[str]:
        """Symbols in the S&P 500 or Nasdaq-100 constituent list."""
        path = CONSTITUENT_PATHS[RecommendationProfile(profile)]

        def fetch() -> List[str]:
            rows = self._get_rows(path)
            symbols = [coerce_string(row.get('symbol')) for row in rows]
            return [s.upper() for s in symbols if s]

        return cached_call(self.cache, f"constituents:{profile.value}", CONSTITUENTS_TTL_SECONDS, fetch)

    def get_price_history(self, symbol: str, days: int = 260) -> List[float]:
        """Daily closes, oldest first."""
        symbol = symbol.upper()

        def fetch() -> List[float]:
            payload = self._get(f"/api/v3/historical-price-full/{symbol}", {'timeseries': days})
            rows = payload.get('historical', []) if isinstance(payload, dict) else []
            dated = [
                (row.get('date'), coerce_number(row.get('close')))
                for row in rows if isinstance(row, dict)
            ]
            dated = [(d, close) for d, close in dated if isinstance(d, str) and close is not None]
            dated.sort(key=lambda item: item[0])
            return [close for _, close in dated]

        return cached_call(self.cache, f"history:{symbol}:{days}", FUNDAMENTALS_TTL_SECONDS, fetch)
