"""Provider interfaces the pipeline depends on, plus payload coercion helpers.

Any object implementing these methods can be passed to the universe builder
and the qualify orchestrator; HTTP clients and the in-memory static provider
both satisfy them.
"""

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Protocol

import requests

from ..models.market import (
    CalendarSnapshot,
    CompanyProfile,
    Fundamentals,
    QuoteSnapshot,
    StockQuote,
    StockTrade,
)
from ..models.option import OptionChainSnapshot
from ..models.types import RecommendationProfile
from ..utils.error_handling import ProviderError, RetryableProviderError, is_retryable_status

FUNDAMENTALS_TTL_SECONDS = 12 * 60 * 60
OPTIONS_TTL_SECONDS = 10 * 60
CONSTITUENTS_TTL_SECONDS = 24 * 60 * 60

DEFAULT_MAX_RETRIES = 3
BASE_DELAY_SECONDS = 0.25
MAX_JITTER_SECONDS = 0.1

_FRACTION_PATTERN = re.compile(r"\.(\d+)")


class FundamentalsProvider(Protocol):
    def get_fundamentals(self, symbol: str) -> Fundamentals: ...

    def get_company_profile(self, symbol: str) -> CompanyProfile | None: ...

    def get_quote_snapshot(self, symbol: str) -> QuoteSnapshot | None: ...

    def get_index_constituents(self, profile: RecommendationProfile) -> List[str]: ...

    def get_price_history(self, symbol: str, days: int = 260) -> List[float]: ...


class MarketDataProvider(Protocol):
    def get_option_chain_snapshot(self, underlying: str) -> OptionChainSnapshot: ...

    def get_latest_quote(self, symbol: str) -> StockQuote: ...

    def get_latest_trade(self, symbol: str) -> StockTrade: ...


class CalendarProvider(Protocol):
    def get_calendar_snapshot(self, symbol: str) -> CalendarSnapshot: ...


def coerce_number(value: Any) -> float | None:
    """Finite number or None (booleans and strings are rejected)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def coerce_string(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def first_number(*values: Any) -> float | None:
    """First value that coerces to a finite number."""
    for value in values:
        number = coerce_number(value)
        if number is not None:
            return number
    return None


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp; fall back to now (UTC) when unparseable."""
    if isinstance(value, str) and value:
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        # Fractional seconds normalized to exactly six digits
        text = _FRACTION_PATTERN.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), text, count=1)
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def parse_iso_date(value: Any) -> date | None:
    """Parse the date part of an ISO date or timestamp string."""
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_retry_after(value: str | None) -> float | None:
    """Retry-After header in seconds (HTTP-date form is not supported)."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def request_json(
    session: requests.Session,
    url: str,
    provider: str,
    params: Dict[str, Any] | None = None,
    headers: Dict[str, str] | None = None,
    timeout: float = 10.0,
) -> Any:
    """GET a JSON payload.

    Raises:
        RetryableProviderError: On 408/429/5xx (carries Retry-After when sent)
        ProviderError: On any other non-200 status, transport failure or invalid JSON
    """
    query = {key: value for key, value in (params or {}).items() if value is not None}
    try:
        response = session.get(url, params=query, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise ProviderError(f"{provider} request failed: {exc}") from exc

    if response.status_code != 200:
        message = f"{provider} API error ({response.status_code}): {response.text}"
        if is_retryable_status(response.status_code):
            raise RetryableProviderError(
                message,
                status_code=response.status_code,
                retry_after=parse_retry_after(response.headers.get('Retry-After')),
            )
        raise ProviderError(message, status_code=response.status_code)

    try:
        return response.json()
    except ValueError as exc:
        raise ProviderError(f"{provider} API returned invalid JSON") from exc
