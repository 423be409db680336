#!/usr/bin/env python3
"""Run a qualify pass and print ranked credit candidates.

Usage:
    python3 run_qualify.py AAPL MSFT --account-size 50000
    python3 run_qualify.py --recommended --profile NASDAQ
    python3 run_qualify.py AAPL --chain-csv data/AAPL_options.csv --price 190.5
"""

import argparse
import sys

from credit_screener.config.settings import load_config
from credit_screener.data.loaders import load_chain_from_csv, load_earnings_calendar
from credit_screener.models.market import CalendarSnapshot, QuoteSnapshot
from credit_screener.models.qualify import QualifyRequest
from credit_screener.models.types import RecommendationProfile, UniverseSource
from credit_screener.output.console import (
    print_candidate_detail,
    print_disqualified,
    print_header,
    print_ranked_results,
    print_summary,
)
from credit_screener.providers import (
    AlpacaClient,
    FmpCalendarClient,
    FmpClient,
    StaticDataProvider,
)
from credit_screener.qualify.orchestrator import QualifyOrchestrator
from credit_screener.utils.cache import TTLCache
from credit_screener.utils.error_handling import ConfigurationError, ScreeningError
from credit_screener.utils.logging_config import setup_logging


def build_static_provider(args) -> StaticDataProvider:
    """Offline provider from a single-underlying chain CSV."""
    chain = load_chain_from_csv(args.chain_csv)
    ticker = chain.underlying
    provider = StaticDataProvider(
        quotes={ticker: QuoteSnapshot(symbol=ticker, price=args.price, avg_volume=args.avg_volume)},
        chains={ticker: chain},
    )
    if args.earnings_csv:
        for symbol, earnings in load_earnings_calendar(args.earnings_csv).items():
            provider.calendars[symbol] = CalendarSnapshot(symbol=symbol, earnings=earnings)
    return provider


def main():
    parser = argparse.ArgumentParser(
        description='Qualify option-selling trades (CSP, PCS, CCS, CC) for a set of tickers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Live data (FMP_API_KEY, ALPACA_API_KEY and ALPACA_API_SECRET must be set)
  python3 run_qualify.py AAPL MSFT JPM --account-size 50000

  # Recommended universe, defined-risk only
  python3 run_qualify.py --recommended --profile SP500 --prefer-defined-risk

  # Offline from a chain CSV
  python3 run_qualify.py --chain-csv data/AAPL_options.csv --price 190.5
        """
    )

    parser.add_argument('tickers', nargs='*', help='Tickers to screen')
    parser.add_argument('--recommended', action='store_true',
                        help='Add the recommended universe (index constituents)')
    parser.add_argument('--profile', choices=[p.value for p in RecommendationProfile],
                        default=RecommendationProfile.SP500.value,
                        help='Recommended universe profile (default: SP500)')
    parser.add_argument('--account-size', type=float, default=100_000,
                        help='Account size in dollars (default: 100000)')
    parser.add_argument('--max-per-trade-pct', type=float, default=None,
                        help='Per-trade allocation limit as a fraction (default: 0.05)')
    parser.add_argument('--prefer-defined-risk', action='store_true',
                        help='Only consider spreads (PCS, CCS)')
    parser.add_argument('--max-candidates', type=int, default=None,
                        help='Max candidates returned (default: 25)')
    parser.add_argument('--details', type=int, default=3,
                        help='Number of candidates shown in detail (default: 3)')
    parser.add_argument('--config', help='YAML parameter file')
    parser.add_argument('--chain-csv', help='Offline option chain CSV (single underlying)')
    parser.add_argument('--price', type=float, help='Underlying price for --chain-csv')
    parser.add_argument('--avg-volume', type=float, default=None,
                        help='Average daily volume for --chain-csv')
    parser.add_argument('--earnings-csv', help='Earnings calendar CSV for --chain-csv')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: WARNING)')
    parser.add_argument('--log-file', help='Also write logs to this file')

    args = parser.parse_args()
    setup_logging(log_level=args.log_level, log_file=args.log_file)

    if args.chain_csv and args.price is None:
        parser.error('--price is required with --chain-csv')
    if not args.tickers and not args.recommended and not args.chain_csv:
        parser.error('give at least one ticker, --recommended or --chain-csv')

    try:
        config = load_config(args.config)

        if args.chain_csv:
            provider = build_static_provider(args)
            fundamentals_provider = market_provider = calendar_provider = provider
            tickers = tuple(args.tickers) or tuple(provider.chains)
            # Offline runs carry no company profile
            config.universe.allow_unknown_profile = True
        else:
            cache = TTLCache()
            fundamentals_provider = FmpClient(cache=cache)
            market_provider = AlpacaClient(cache=cache)
            calendar_provider = FmpCalendarClient()
            tickers = tuple(args.tickers)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)
    except ScreeningError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    request = QualifyRequest(
        account_size=args.account_size,
        source=UniverseSource.RECOMMENDED if args.recommended else UniverseSource.MANUAL,
        tickers=tickers,
        recommendation_profile=RecommendationProfile(args.profile),
        prefer_defined_risk=True if args.prefer_defined_risk else None,
        max_per_trade_pct=args.max_per_trade_pct,
        max_candidates=args.max_candidates,
    )

    orchestrator = QualifyOrchestrator(fundamentals_provider, market_provider, calendar_provider,
                                       config)

    try:
        response = orchestrator.qualify(request)
    except ConfigurationError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    print_header(request.account_size, response.universe_size)
    print_summary(response)
    print_ranked_results(response.candidates)
    for rank, qualified in enumerate(response.candidates[:args.details], start=1):
        print_candidate_detail(qualified, rank)
    print_disqualified(response.disqualified)


if __name__ == '__main__':
    main()
