"""Console output formatter for qualify results."""

from typing import Sequence

from ..models.qualify import DisqualifiedTicker, QualifiedCandidate, QualifyResponse


def format_legs(short_strike: float, long_strike: float | None) -> str:
    """Strikes as "short/long" for spreads, the short strike alone otherwise."""
    if long_strike is None:
        return f"{short_strike:g}"
    return f"{short_strike:g}/{long_strike:g}"


def print_header(account_size: float, ticker_count: int):
    """Print qualify session header.

    Args:
        account_size: Account size used for sizing checks
        ticker_count: Number of tickers in the resolved universe
    """
    print("\n" + "=" * 80)
    print("  CREDIT SCREENER - QUALIFY")
    print(f"  Account Size: ${account_size:,.0f}   Tickers: {ticker_count}")
    print("=" * 80)


def print_summary(response: QualifyResponse):
    print("\nSummary:")
    print(f"  Generated at: {response.generated_at:%Y-%m-%d %H:%M:%S %Z}")
    print(f"  Qualified candidates: {len(response.candidates)}")
    print(f"  Disqualified tickers: {len(response.disqualified)}\n")


def print_ranked_results(candidates: Sequence[QualifiedCandidate]):
    """Print ranked candidates as a compact table.

    Args:
        candidates: Qualified candidates, best first
    """
    if not candidates:
        print("No candidates found matching criteria.")
        return

    print("\nTop Credit Candidates:")
    print("-" * 110)

    header = (
        f"{'Rank':>4} {'Ticker':<7} {'Strat':<5} {'Exp':^10} {'DTE':>4} {'Strikes':^13} "
        f"{'Credit':>7} {'MaxLoss':>8} {'POP':>5} {'Delta':>6} {'Score':>5} {'Tier':<10} {'Alloc':>6}"
    )
    print(header)
    print("-" * 110)

    for rank, qualified in enumerate(candidates, start=1):
        trade = qualified.candidate
        alloc = f"{qualified.sizing.allocation_pct:.1%}"
        if not qualified.sizing.within_limit:
            alloc += "!"

        row = (
            f"{rank:>4} {trade.ticker:<7} {trade.strategy.value:<5} "
            f"{trade.expiration.strftime('%Y-%m-%d'):^10} {trade.dte:>4} "
            f"{format_legs(trade.short_strike, trade.long_strike):^13} "
            f"${trade.credit:>6.2f} ${trade.max_loss:>7.2f} {trade.pop:>5.0%} "
            f"{trade.short_delta:>6.2f} {trade.score.total:>5} {trade.interpretation.value:<10} {alloc:>6}"
        )
        print(row)

    print("-" * 110)


def print_candidate_detail(qualified: QualifiedCandidate, rank: int = 1):
    """Print score breakdown, rationale and risk flags for one candidate.

    Args:
        qualified: Candidate to display
        rank: Rank number (for display purposes)
    """
    trade = qualified.candidate
    breakdown = trade.score

    print(f"\n{'=' * 80}")
    print(f"Rank #{rank}: {trade.ticker} {trade.strategy.value} "
          f"{format_legs(trade.short_strike, trade.long_strike)}")
    print(f"{'=' * 80}")

    print(f"\nExpiration: {trade.expiration.strftime('%Y-%m-%d')} ({trade.dte} DTE)")
    print(f"Stock regime: {trade.stock_regime.value}   IV: {trade.iv:.2%} ({trade.iv_trend})")

    print("\nRisk/Reward:")
    print(f"  Credit:           ${trade.credit:.2f}")
    print(f"  Max Loss:         ${trade.max_loss:.2f}")
    print(f"  Breakeven:        ${trade.breakeven:.2f}")
    print(f"  POP:              {trade.pop:.0%}")
    print(f"  Theta/day:        ${trade.theta_per_day:.3f}")

    print(f"\nScore: {breakdown.total}/100 ({trade.interpretation.value})")
    print(f"  Fundamentals {breakdown.fundamentals}, Liquidity {breakdown.liquidity}, "
          f"Volatility {breakdown.volatility}, Trend {breakdown.trend}, "
          f"Event risk {breakdown.event_risk}")

    print("\nWhy:")
    for bullet in trade.why:
        print(f"  - {bullet}")

    if trade.risk_flags:
        print(f"\nRisk flags: {', '.join(flag.value for flag in trade.risk_flags)}")

    sizing = qualified.sizing
    print(f"\nSizing: ${sizing.required_collateral:,.0f} collateral, "
          f"{sizing.allocation_pct:.1%} of account")
    if sizing.warning:
        print(f"  ⚠ {sizing.warning}")

    print(f"{'=' * 80}\n")


def print_disqualified(disqualified: Sequence[DisqualifiedTicker]):
    if not disqualified:
        return

    print("\nDisqualified:")
    print("-" * 80)
    for entry in disqualified:
        print(f"  {entry.ticker:<7} {' '.join(entry.reasons)}")
    print("-" * 80)
