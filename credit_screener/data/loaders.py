"""Data loaders for option chains and earnings calendars from CSV files."""

import csv
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List

from ..models.market import EarningsInfo
from ..models.option import OptionChainSnapshot, OptionContract
from ..models.types import OptionSide
from ..utils.error_handling import DataValidationError
from .validators import normalize_ticker, validate_option_contract

logger = logging.getLogger("credit_screener.loaders")

REQUIRED_CHAIN_FIELDS = {
    'ticker', 'strike', 'expiration', 'option_type', 'bid', 'ask',
    'volume', 'open_interest', 'implied_vol'
}


def load_chain_from_csv(csv_path: str | Path, as_of: datetime | None = None) -> OptionChainSnapshot:
    """Load an option chain snapshot from CSV file.

    Expected CSV format:
        ticker,strike,expiration,option_type,bid,ask,last,volume,open_interest,
        delta,theta,implied_vol[,symbol]

    Args:
        csv_path: Path to CSV file (one underlying)
        as_of: Snapshot timestamp (defaults to now)

    Returns:
        OptionChainSnapshot with contracts in file order

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        DataValidationError: If required columns are missing, the file holds
            more than one underlying, or no row parses
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        logger.error("CSV file not found: %s", csv_path)
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info("Loading option chain from CSV: %s", csv_path)

    contracts: List[OptionContract] = []
    with open(csv_path, 'r', newline='') as f:
        reader = csv.DictReader(f)

        fieldnames = set(reader.fieldnames or [])
        if not REQUIRED_CHAIN_FIELDS.issubset(fieldnames):
            missing = REQUIRED_CHAIN_FIELDS - fieldnames
            logger.error("CSV missing required fields: %s", missing)
            raise DataValidationError(f"CSV missing required fields: {sorted(missing)}")

        skipped_rows = 0
        row_num = 1
        for row_num, row in enumerate(reader, start=2):  # header is row 1
            try:
                contracts.append(validate_option_contract(_parse_contract_row(row)))
            except (ValueError, KeyError) as e:
                logger.warning("Skipping row %d in %s due to error: %s", row_num, csv_path.name, e)
                skipped_rows += 1

        if skipped_rows > 0:
            logger.warning(
                "Skipped %d invalid rows out of %d total rows in %s",
                skipped_rows, row_num - 1, csv_path.name
            )

    if not contracts:
        logger.error("No valid contracts found in %s", csv_path)
        raise DataValidationError(f"No valid contracts found in {csv_path}")

    underlyings = {contract.underlying for contract in contracts}
    if len(underlyings) > 1:
        raise DataValidationError(f"CSV holds more than one underlying: {sorted(underlyings)}")

    logger.info("Successfully loaded %d contracts from %s", len(contracts), csv_path.name)
    return OptionChainSnapshot(
        underlying=underlyings.pop(),
        as_of=as_of or datetime.now(),
        contracts=tuple(contracts),
    )


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD or MM/DD/YYYY."""
    value = value.strip()
    for fmt in ('%Y-%m-%d', '%m/%d/%Y'):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date format: {value}")


def _parse_optional_float(value: str | None) -> float | None:
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() in ('null', 'none', 'nan'):
        return None
    return float(value)


def _parse_contract_row(row: dict) -> OptionContract:
    """Parse a single CSV row into an OptionContract.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    expiration = parse_date(row['expiration'])

    option_type = row['option_type'].strip().lower()
    if option_type not in ('call', 'put'):
        raise ValueError(f"Invalid option_type: {option_type}")
    side = OptionSide(option_type)

    underlying = normalize_ticker(row['ticker'])
    strike = float(row['strike'])
    symbol = (row.get('symbol') or '').strip() or occ_symbol(underlying, expiration, side, strike)

    return OptionContract(
        symbol=symbol,
        underlying=underlying,
        side=side,
        expiration=expiration,
        strike=strike,
        bid=float(row['bid']),
        ask=float(row['ask']),
        last=_parse_optional_float(row.get('last')),
        volume=int(float(row['volume'])),
        open_interest=int(float(row['open_interest'])),
        delta=_parse_optional_float(row.get('delta')),
        theta=_parse_optional_float(row.get('theta')),
        implied_vol=float(row['implied_vol']),
    )


def occ_symbol(underlying: str, expiration: date, side: OptionSide, strike: float) -> str:
    """Build an OCC option symbol, e.g. AAPL250117P00140000."""
    return (f"{underlying}{expiration.strftime('%y%m%d')}"
            f"{'P' if side == OptionSide.PUT else 'C'}{round(strike * 1000):08d}")


def load_earnings_calendar(csv_path: str | Path, today: date | None = None) -> Dict[str, EarningsInfo]:
    """Load earnings calendar from CSV file.

    Expected CSV format:
        symbol,earnings_date[,days_until_earnings]

    Days until earnings are recomputed from ``today`` when the column is blank.

    Returns:
        Dictionary mapping ticker symbols to EarningsInfo (empty if the file
        does not exist)

    Example:
        >>> earnings = load_earnings_calendar('data/earnings_calendar.csv')
        >>> info = earnings.get('AAPL')
        >>> if info:
        ...     print(f"AAPL reports in {info.days_to_earnings} days")
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        logger.warning("Earnings calendar file not found: %s", csv_path)
        return {}

    logger.info("Loading earnings calendar from: %s", csv_path)
    today = today or date.today()
    earnings_map: Dict[str, EarningsInfo] = {}

    with open(csv_path, 'r', newline='') as f:
        reader = csv.DictReader(f)
        for row in reader:
            try:
                symbol = normalize_ticker(row['symbol'])
                date_str = (row.get('earnings_date') or '').strip()
                if not date_str or date_str.lower() in ('none', 'null', 'unknown'):
                    continue

                earnings_date = parse_date(date_str)
                days_until = _parse_optional_float(row.get('days_until_earnings'))
                days = int(days_until) if days_until is not None else (earnings_date - today).days

                earnings_map[symbol] = EarningsInfo(earnings_date=earnings_date, days_to_earnings=days)
            except (KeyError, ValueError) as e:
                logger.warning("Skipping invalid earnings row: %s", e)
                continue

    logger.info("Loaded earnings data for %d symbols", len(earnings_map))
    return earnings_map
