# copytrade/capital/models.py
"""Data models for capital allocation."""
from dataclasses import dataclass, field

from copytrade.models.positions import Side


@dataclass(frozen=True)
class ProportionalPolicy:
    """Split a total margin budget in proportion to the agent's margins.

    Attributes:
        total_margin: Budget to distribute (None uses the allocator default).
        available_balance: Account balance; the budget is clamped to it.
    """

    total_margin: float | None = None
    available_balance: float | None = None


@dataclass(frozen=True)
class FixedAmountPolicy:
    """Give every funded symbol the same margin, in signal order.

    Attributes:
        amount_per_coin: Margin per symbol.
        max_total_margin: Optional cap on the total committed.
        available_balance: Account balance; also caps the total.
    """

    amount_per_coin: float
    max_total_margin: float | None = None
    available_balance: float | None = None


AllocationPolicy = ProportionalPolicy | FixedAmountPolicy


@dataclass
class CapitalAllocation:
    """Margin and quantity to submit for one symbol.

    Attributes:
        symbol: Symbol as reported by the signal source.
        original_margin: Margin the agent committed.
        allocated_margin: User margin, floored to whole units.
        notional_value: Position value, floored to whole units.
        adjusted_quantity: Order quantity rounded to the symbol's precision.
        allocation_ratio: Share of the budget given to this symbol.
        leverage: Leverage copied from the signal.
        side: BUY for long signals, SELL for short ones.
    """

    symbol: str
    original_margin: float
    allocated_margin: float
    notional_value: float
    adjusted_quantity: float
    allocation_ratio: float
    leverage: int
    side: Side


@dataclass
class CapitalAllocationResult:
    """Allocations for one cycle plus totals and non-fatal warnings."""

    total_original_margin: float
    total_allocated_margin: float
    total_notional_value: float
    allocations: list[CapitalAllocation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls, total_original_margin: float = 0.0, warnings: list[str] | None = None):
        return cls(
            total_original_margin=total_original_margin,
            total_allocated_margin=0.0,
            total_notional_value=0.0,
            allocations=[],
            warnings=warnings or [],
        )

    def get(self, symbol: str) -> CapitalAllocation | None:
        return next((a for a in self.allocations if a.symbol == symbol), None)
