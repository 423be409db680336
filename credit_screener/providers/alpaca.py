"""Alpaca market data client for stock quotes, trades and option chain snapshots.

Every request retries rate-limit, timeout and server-error responses with
exponential backoff plus jitter, honoring Retry-After when sent.
"""

import logging
import os
import re
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import requests

from ..data.validators import filter_valid_contracts
from ..models.market import StockQuote, StockTrade
from ..models.option import OptionChainSnapshot, OptionContract
from ..models.types import OptionSide
from ..utils.cache import Cache, cached_call
from ..utils.error_handling import ConfigurationError, retry_with_backoff
from .base import (
    BASE_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    MAX_JITTER_SECONDS,
    OPTIONS_TTL_SECONDS,
    coerce_number,
    coerce_string,
    first_number,
    parse_iso_date,
    parse_timestamp,
    request_json,
)

logger = logging.getLogger("credit_screener.providers.alpaca")

DEFAULT_DATA_URL = "https://data.alpaca.markets"
MAX_SNAPSHOT_PAGES = 50

OCC_SYMBOL_PATTERN = re.compile(r"^([A-Z]{1,6})(\d{6})([CP])(\d{8})$")


def parse_option_symbol(symbol: str) -> Dict[str, Any] | None:
    """Split an OCC symbol (AAPL250117P00140000) into its parts.

    Returns:
        Dict with underlying, expiration, side and strike, or None if the
        symbol is not OCC-formatted
    """
    match = OCC_SYMBOL_PATTERN.match(symbol)
    if not match:
        return None
    root, ymd, cp, strike = match.groups()
    try:
        expiration = date(2000 + int(ymd[:2]), int(ymd[2:4]), int(ymd[4:6]))
    except ValueError:
        return None
    return {
        'underlying': root,
        'expiration': expiration,
        'side': OptionSide.PUT if cp == 'P' else OptionSide.CALL,
        'strike': int(strike) / 1000,
    }


def parse_snapshot_contract(symbol: str, data: Dict[str, Any]) -> OptionContract | None:
    """Build an OptionContract from one snapshot entry; None if unresolvable."""
    latest_quote = data.get('latestQuote') or data.get('latest_quote') or {}
    latest_trade = data.get('latestTrade') or data.get('latest_trade') or {}
    greeks = data.get('greeks') or {}
    parsed = parse_option_symbol(symbol) or {}

    expiration = parse_iso_date(data.get('expiration_date')) or parsed.get('expiration')
    side_text = data.get('type')
    side = OptionSide(side_text) if side_text in ('put', 'call') else parsed.get('side')
    strike = coerce_number(data.get('strike_price')) or parsed.get('strike')
    underlying = coerce_string(data.get('root_symbol')) or parsed.get('underlying')

    if expiration is None or side is None or not strike or not underlying:
        logger.debug("Skipping unparseable option snapshot %s", symbol)
        return None

    return OptionContract(
        symbol=symbol,
        underlying=underlying,
        side=side,
        expiration=expiration,
        strike=strike,
        bid=coerce_number(latest_quote.get('bp')) or 0.0,
        ask=coerce_number(latest_quote.get('ap')) or 0.0,
        last=coerce_number(latest_trade.get('p')),
        open_interest=int(first_number(data.get('open_interest'), data.get('openInterest')) or 0),
        volume=int(coerce_number(data.get('volume')) or 0),
        implied_vol=first_number(data.get('impliedVolatility'), data.get('implied_volatility')) or 0.0,
        delta=coerce_number(greeks.get('delta')),
        theta=coerce_number(greeks.get('theta')),
    )


class AlpacaClient:
    """Alpaca market data REST client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        data_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        cache: Optional[Cache] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize Alpaca client.

        Args:
            api_key: Key ID; falls back to ``ALPACA_API_KEY``
            api_secret: Secret; falls back to ``ALPACA_API_SECRET``
            data_url: Data API root; falls back to ``ALPACA_DATA_URL``
            session: Optional ``requests.Session`` for connection reuse/testing
            cache: Optional TTL cache shared across providers
            max_retries: Retries after the first attempt for transient failures
            timeout: Per-request timeout in seconds
            sleep: Sleep function used between retries (injectable for tests)

        Raises:
            ConfigurationError: If either credential is missing
        """
        self.api_key = api_key or os.getenv("ALPACA_API_KEY")
        self.api_secret = api_secret or os.getenv("ALPACA_API_SECRET")
        if not self.api_key or not self.api_secret:
            raise ConfigurationError(
                "Alpaca API credentials are required (set ALPACA_API_KEY and ALPACA_API_SECRET)."
            )
        self.data_url = (data_url or os.getenv("ALPACA_DATA_URL") or DEFAULT_DATA_URL).rstrip('/')
        self.session = session or requests.Session()
        self.cache = cache
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep

    def _request(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        headers = {
            'APCA-API-KEY-ID': self.api_key,
            'APCA-API-SECRET-KEY': self.api_secret,
            'Accept': 'application/json',
        }

        @retry_with_backoff(
            max_retries=self.max_retries,
            base_delay=BASE_DELAY_SECONDS,
            max_jitter=MAX_JITTER_SECONDS,
            sleep=self._sleep,
        )
        def fetch():
            return request_json(
                self.session,
                f"{self.data_url}{path}",
                provider="Alpaca",
                params=params,
                headers=headers,
                timeout=self.timeout,
            )

        payload = fetch()
        if not isinstance(payload, dict):
            return {}
        return payload

    def get_latest_quote(self, symbol: str, feed: str = "iex") -> StockQuote:
        symbol = symbol.upper()
        payload = self._request(f"/v2/stocks/{symbol}/quotes/latest", {'feed': feed})
        quote = payload.get('quote') or {}
        return StockQuote(
            symbol=symbol,
            bid_price=coerce_number(quote.get('bp')) or 0.0,
            ask_price=coerce_number(quote.get('ap')) or 0.0,
            bid_size=coerce_number(quote.get('bs')) or 0.0,
            ask_size=coerce_number(quote.get('as')) or 0.0,
            timestamp=parse_timestamp(quote.get('t')),
        )

    def get_latest_trade(self, symbol: str, feed: str = "iex") -> StockTrade:
        symbol = symbol.upper()
        payload = self._request(f"/v2/stocks/{symbol}/trades/latest", {'feed': feed})
        trade = payload.get('trade') or {}
        return StockTrade(
            symbol=symbol,
            price=coerce_number(trade.get('p')) or 0.0,
            size=coerce_number(trade.get('s')) or 0.0,
            timestamp=parse_timestamp(trade.get('t')),
        )

    def get_option_chain_snapshot(self, underlying: str, feed: str = "indicative") -> OptionChainSnapshot:
        """Full option chain across expirations, following pagination.

        Cached for 10 minutes per underlying and feed.
        """
        underlying = underlying.upper()

        def fetch() -> OptionChainSnapshot:
            contracts: List[OptionContract] = []
            timestamps: List[str] = []
            page_token = None

            for _ in range(MAX_SNAPSHOT_PAGES):
                payload = self._request(
                    f"/v1beta1/options/snapshots/{underlying}",
                    {'feed': feed, 'page_token': page_token},
                )
                snapshots = payload.get('snapshots') or {}
                for symbol, data in snapshots.items():
                    if not isinstance(data, dict):
                        continue
                    contract = parse_snapshot_contract(symbol, data)
                    if contract is not None:
                        contracts.append(contract)
                    quote = data.get('latestQuote') or data.get('latest_quote') or {}
                    trade = data.get('latestTrade') or data.get('latest_trade') or {}
                    stamp = quote.get('t') or trade.get('t')
                    if stamp:
                        timestamps.append(stamp)

                page_token = payload.get('next_page_token')
                if not page_token:
                    break
            else:
                logger.warning("Stopped paging %s option snapshots after %d pages",
                               underlying, MAX_SNAPSHOT_PAGES)

            logger.debug("Loaded %d option contracts for %s", len(contracts), underlying)
            return OptionChainSnapshot(
                underlying=underlying,
                as_of=parse_timestamp(timestamps[0] if timestamps else None),
                contracts=tuple(filter_valid_contracts(contracts)),
            )

        return cached_call(self.cache, f"options:{underlying}:{feed}", OPTIONS_TTL_SECONDS, fetch)
