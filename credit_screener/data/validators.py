"""Record validators for tickers and option contract data.

Malformed provider or file records raise DataValidationError; callers decide
whether to skip the record or fail the load.
"""

import logging
import re
from typing import Iterable, List

from ..models.option import OptionContract
from ..utils.error_handling import DataValidationError

logger = logging.getLogger("credit_screener.validators")

TICKER_PATTERN = re.compile(r"^[A-Z0-9.\-]{1,8}$")


def normalize_ticker(ticker: str) -> str:
    """Trim whitespace and uppercase."""
    return ticker.strip().upper()


def is_valid_ticker(ticker: str) -> bool:
    """True for 1-8 characters of A-Z, 0-9, '.' or '-'."""
    return bool(TICKER_PATTERN.match(ticker))


def normalize_tickers(tickers: Iterable[str]) -> List[str]:
    """Normalize, de-duplicate and sort a ticker list.

    Example:
        >>> normalize_tickers([" msft", "AAPL", "aapl "])
        ['AAPL', 'MSFT']
    """
    return sorted({normalize_ticker(ticker) for ticker in tickers})


def validate_option_contract(contract: OptionContract) -> OptionContract:
    """Check a contract for internally consistent quote data.

    Returns:
        The same contract, for use in comprehensions

    Raises:
        DataValidationError: On non-positive strike, negative quotes,
            crossed market, negative OI/volume or negative IV
    """
    if contract.strike <= 0:
        raise DataValidationError(f"{contract.symbol}: strike must be positive, got {contract.strike}")
    if contract.bid < 0 or contract.ask < 0:
        raise DataValidationError(
            f"{contract.symbol}: negative quote (bid={contract.bid}, ask={contract.ask})"
        )
    if contract.ask > 0 and contract.bid > contract.ask:
        raise DataValidationError(
            f"{contract.symbol}: crossed market (bid={contract.bid} > ask={contract.ask})"
        )
    if contract.open_interest < 0 or contract.volume < 0:
        raise DataValidationError(f"{contract.symbol}: negative open interest or volume")
    if contract.implied_vol < 0:
        raise DataValidationError(f"{contract.symbol}: negative implied volatility")
    return contract


def filter_valid_contracts(contracts: Iterable[OptionContract]) -> List[OptionContract]:
    """Drop contracts that fail validation, logging how many were dropped."""
    valid = []
    rejected = 0
    for contract in contracts:
        try:
            valid.append(validate_option_contract(contract))
        except DataValidationError as e:
            logger.debug("Dropping contract: %s", e)
            rejected += 1

    if rejected:
        logger.warning("Dropped %d invalid contracts out of %d", rejected, rejected + len(valid))
    return valid
