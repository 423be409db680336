"""Option contract and chain snapshot data models."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import List, Tuple

from .types import OptionSide


@dataclass(frozen=True)
class OptionContract:
    """Represents a single option contract quote.

    Immutable dataclass: contracts are read-only facts for one evaluation pass.
    All monetary values in dollars, greeks in standard units, IV as decimal (0.25 = 25%).
    """

    symbol: str
    underlying: str
    side: OptionSide
    expiration: date
    strike: float

    # Market data
    bid: float
    ask: float
    open_interest: int
    volume: int

    # Volatility
    implied_vol: float

    # Optional fields
    last: float | None = None
    delta: float | None = None
    theta: float | None = None

    @property
    def mid(self) -> float:
        """Mid price between bid and ask."""
        return (self.bid + self.ask) / 2.0

    @property
    def spread_pct(self) -> float | None:
        """Bid-ask spread as a fraction of mid price.

        Returns:
            Fraction (0.10 = 10%), or None if mid is not positive
        """
        if self.mid <= 0:
            return None
        return (self.ask - self.bid) / self.mid

    def otm_pct(self, underlying_price: float) -> float:
        """Out-of-the-money distance as a fraction of the underlying price.

        Positive when OTM, zero at the money, negative when ITM.
        """
        if underlying_price <= 0:
            return 0.0
        if self.side == OptionSide.PUT:
            return (underlying_price - self.strike) / underlying_price
        return (self.strike - underlying_price) / underlying_price

    def __repr__(self) -> str:
        """Compact string representation for debugging."""
        delta = f"{self.delta:.3f}" if self.delta is not None else "n/a"
        return (f"OptionContract({self.underlying} {self.strike:g}{self.side.value[0].upper()} "
                f"{self.expiration.strftime('%Y-%m-%d')} Δ={delta} IV={self.implied_vol:.2%})")


@dataclass(frozen=True)
class OptionChainSnapshot:
    """All contracts for one underlying across expirations, as of a timestamp."""

    underlying: str
    as_of: datetime
    contracts: Tuple[OptionContract, ...] = field(default_factory=tuple)

    def expirations(self) -> List[date]:
        """Sorted unique expiration dates present in the chain."""
        return sorted({contract.expiration for contract in self.contracts})

    def for_expiration(self, expiration: date) -> "OptionChainSnapshot":
        """Slice of the chain holding only one expiration."""
        return replace(
            self,
            contracts=tuple(c for c in self.contracts if c.expiration == expiration),
        )

    def __len__(self) -> int:
        return len(self.contracts)
