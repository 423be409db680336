"""Earnings and macro-event calendar backed by Financial Modeling Prep.

Degrades instead of failing: without an API key, or when an endpoint errors,
the snapshot simply carries no earnings date and no macro events.
"""

import logging
import os
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

import requests

from ..models.market import CalendarSnapshot, EarningsInfo, MacroEvent
from ..utils.error_handling import ProviderError
from .base import coerce_string, parse_iso_date, request_json
from .fmp import DEFAULT_BASE_URL

logger = logging.getLogger("credit_screener.providers.calendar")

MACRO_HORIZON_DAYS = 14

CPI_KEYWORDS = ("cpi", "consumer price")
FOMC_KEYWORDS = ("fomc", "federal open market committee", "federal funds", "fed rate")


def classify_macro_event(label: str) -> str | None:
    """Map an economic-calendar label to CPI or FOMC; None for anything else."""
    normalized = label.lower()
    if any(keyword in normalized for keyword in CPI_KEYWORDS):
        return "CPI"
    if any(keyword in normalized for keyword in FOMC_KEYWORDS):
        return "FOMC"
    return None


class FmpCalendarClient:
    """Earnings and economic calendar client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        horizon_days: int = MACRO_HORIZON_DAYS,
        timeout: float = 10.0,
        today: Callable[[], date] = date.today,
    ):
        self.api_key = api_key or os.getenv("FMP_API_KEY")
        self.base_url = (base_url or os.getenv("FMP_BASE_URL") or DEFAULT_BASE_URL).rstrip('/')
        self.session = session or requests.Session()
        self.horizon_days = horizon_days
        self.timeout = timeout
        self._today = today

        if not self.api_key:
            logger.warning("FMP_API_KEY not set; calendar data will be empty")

    def _get_rows(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.api_key:
            return []
        query = dict(params)
        query['apikey'] = self.api_key
        try:
            payload = request_json(
                self.session,
                f"{self.base_url}{path}",
                provider="FMP calendar",
                params=query,
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
        except ProviderError as e:
            logger.warning("Calendar request %s failed: %s", path, e)
            return []
        if not isinstance(payload, list):
            return []
        return [row for row in payload if isinstance(row, dict)]

    def get_earnings_info(self, symbol: str, today: date | None = None) -> EarningsInfo:
        """Next earnings date within the coming year."""
        today = today or self._today()
        rows = self._get_rows("/api/v3/earning_calendar", {
            'symbol': symbol,
            'from': today.isoformat(),
            'to': (today + timedelta(days=365)).isoformat(),
        })

        upcoming = sorted(
            d for d in (parse_iso_date(row.get('date')) for row in rows
                        if row.get('symbol') in (None, symbol))
            if d is not None and d >= today
        )
        if not upcoming:
            return EarningsInfo()

        next_date = upcoming[0]
        return EarningsInfo(earnings_date=next_date, days_to_earnings=(next_date - today).days)

    def get_macro_events(self, today: date | None = None) -> List[MacroEvent]:
        """CPI and FOMC events within the horizon, in calendar order."""
        today = today or self._today()
        rows = self._get_rows("/api/v3/economic_calendar", {
            'from': today.isoformat(),
            'to': (today + timedelta(days=self.horizon_days)).isoformat(),
        })

        events: List[MacroEvent] = []
        for row in rows:
            label = (coerce_string(row.get('event')) or coerce_string(row.get('name'))
                     or coerce_string(row.get('title')))
            if not label:
                continue
            event_type = classify_macro_event(label)
            if event_type is None:
                continue
            event_date = (parse_iso_date(row.get('date')) or parse_iso_date(row.get('eventDate'))
                          or parse_iso_date(row.get('dateTime')))
            if event_date is None:
                continue
            if not 0 <= (event_date - today).days <= self.horizon_days:
                continue
            events.append(MacroEvent(type=event_type, date=event_date, label=label))

        events.sort(key=lambda event: event.date)
        return events

    def get_calendar_snapshot(self, symbol: str) -> CalendarSnapshot:
        symbol = symbol.upper()
        today = self._today()
        return CalendarSnapshot(
            symbol=symbol,
            earnings=self.get_earnings_info(symbol, today),
            macro_events=tuple(self.get_macro_events(today)),
        )
