# copytrade/capital/capital_allocator.py
"""Converts the agent's position sizes into the user's margin budget."""
import logging
import math

from copytrade.capital.models import (
    AllocationPolicy,
    CapitalAllocation,
    CapitalAllocationResult,
    FixedAmountPolicy,
    ProportionalPolicy,
)
from copytrade.exceptions import ConfigurationError
from copytrade.models.positions import SignalPosition

logger = logging.getLogger(__name__)

DEFAULT_QUANTITY_PRECISION = 3

# Decimal places accepted for order quantities, keyed by USDT pair.
QUANTITY_PRECISION: dict[str, int] = {
    "BTCUSDT": 3,
    "ETHUSDT": 3,
    "BNBUSDT": 2,
    "XRPUSDT": 1,
    "ADAUSDT": 0,
    "DOGEUSDT": 0,
    "SOLUSDT": 2,
    "AVAXUSDT": 2,
    "MATICUSDT": 1,
    "DOTUSDT": 2,
    "LINKUSDT": 2,
    "UNIUSDT": 2,
}

MARGIN_TOLERANCE = 10.0
RATIO_EPSILON = 1e-3


def quantity_precision(symbol: str) -> int:
    """Return the quantity precision for a symbol (3 when unknown)."""
    pair = symbol.upper() if symbol.upper().endswith("USDT") else f"{symbol.upper()}USDT"
    return QUANTITY_PRECISION.get(pair, DEFAULT_QUANTITY_PRECISION)


def round_quantity(quantity: float, symbol: str) -> float:
    """Round a quantity half-up to the symbol's precision."""
    factor = 10 ** quantity_precision(symbol)
    return math.floor(quantity * factor + 0.5) / factor


def validate_allocation_options(
    total_margin: float | None = None,
    fixed_amount_per_coin: float | None = None,
) -> tuple[bool, str | None]:
    """Check capital options without raising.

    Returns:
        Tuple of (is_valid, error message or None).
    """
    if total_margin is not None and fixed_amount_per_coin is not None:
        return (
            False,
            "Cannot specify both totalMargin and fixedAmountPerCoin. Please choose either "
            "proportional allocation or fixed amount allocation.",
        )
    if fixed_amount_per_coin is not None and fixed_amount_per_coin <= 0:
        return False, "fixedAmountPerCoin must be greater than 0"
    if total_margin is not None and total_margin <= 0:
        return False, "totalMargin must be greater than 0"
    return True, None


def assert_disjoint(total_margin: float | None, fixed_amount_per_coin: float | None) -> None:
    """Reject capital options that set both strategies or non-positive amounts.

    Raises:
        ConfigurationError: If the options are invalid.
    """
    is_valid, error = validate_allocation_options(total_margin, fixed_amount_per_coin)
    if not is_valid:
        raise ConfigurationError(error)


def allocation_policy_from_options(
    total_margin: float | None = None,
    fixed_amount_per_coin: float | None = None,
    max_total_margin: float | None = None,
    available_balance: float | None = None,
) -> AllocationPolicy:
    """Build the allocation policy once from optional user options.

    Raises:
        ConfigurationError: If both strategies are requested or an amount is invalid.
    """
    assert_disjoint(total_margin, fixed_amount_per_coin)
    if fixed_amount_per_coin is not None:
        return FixedAmountPolicy(
            amount_per_coin=fixed_amount_per_coin,
            max_total_margin=max_total_margin,
            available_balance=available_balance,
        )
    return ProportionalPolicy(total_margin=total_margin, available_balance=available_balance)


class CapitalAllocator:
    """Allocates the user's margin across the agent's new positions.

    Margin and notional values are floored so the allocator never asks for
    more than the budget. Quantities are rounded to the nearest lot step
    instead, since lot-size compliance is the constraint there.

    Attributes:
        default_total_margin: Budget used when a proportional policy has none.
    """

    def __init__(self, default_total_margin: float = 10.0):
        if default_total_margin <= 0:
            raise ConfigurationError("Total margin must be positive")
        self._default_total_margin = default_total_margin

    @property
    def default_total_margin(self) -> float:
        return self._default_total_margin

    def set_default_total_margin(self, margin: float) -> None:
        """Change the default proportional budget.

        Raises:
            ConfigurationError: If margin is not positive.
        """
        if margin <= 0:
            raise ConfigurationError("Total margin must be positive")
        self._default_total_margin = margin

    def allocate(
        self, positions: list[SignalPosition], policy: AllocationPolicy
    ) -> CapitalAllocationResult:
        """Allocate with whichever policy was chosen at startup."""
        if isinstance(policy, FixedAmountPolicy):
            return self.allocate_fixed_margin(
                positions,
                policy.amount_per_coin,
                max_total_margin=policy.max_total_margin,
                available_balance=policy.available_balance,
            )
        return self.allocate_margin(
            positions,
            total_margin=policy.total_margin,
            available_balance=policy.available_balance,
        )

    def allocate_margin(
        self,
        positions: list[SignalPosition],
        total_margin: float | None = None,
        available_balance: float | None = None,
    ) -> CapitalAllocationResult:
        """Distribute a total margin in proportion to the agent's margins.

        Args:
            positions: Agent positions to copy.
            total_margin: Budget; the default is used when None.
            available_balance: If given and smaller than the budget, the
                budget is reduced to it.

        Returns:
            CapitalAllocationResult with one allocation per position that has margin.
        """
        budget = total_margin if total_margin is not None else self._default_total_margin
        warnings: list[str] = []

        if available_balance is not None and budget > available_balance:
            warning = (
                f"Insufficient available balance: required {budget:.2f} USDT, "
                f"available {available_balance:.2f} USDT; reducing allocation to available balance"
            )
            logger.warning(warning)
            warnings.append(warning)
            budget = max(available_balance, 0.0)

        valid_positions = [p for p in positions if p.margin > 0 and p.signed_quantity != 0]
        if not valid_positions:
            return CapitalAllocationResult.empty(warnings=warnings)

        total_original_margin = sum(p.margin for p in valid_positions)

        allocations = []
        for position in valid_positions:
            ratio = position.margin / total_original_margin
            allocated_margin = budget * ratio
            notional_value = allocated_margin * position.leverage
            allocations.append(
                CapitalAllocation(
                    symbol=position.symbol,
                    original_margin=position.margin,
                    allocated_margin=math.floor(allocated_margin),
                    notional_value=math.floor(notional_value),
                    adjusted_quantity=round_quantity(
                        notional_value / position.current_price, position.symbol
                    ),
                    allocation_ratio=ratio,
                    leverage=position.leverage,
                    side=position.side,
                )
            )

        return CapitalAllocationResult(
            total_original_margin=total_original_margin,
            total_allocated_margin=sum(a.allocated_margin for a in allocations),
            total_notional_value=sum(a.notional_value for a in allocations),
            allocations=allocations,
            warnings=warnings,
        )

    def allocate_fixed_margin(
        self,
        positions: list[SignalPosition],
        fixed_amount_per_coin: float,
        max_total_margin: float | None = None,
        available_balance: float | None = None,
    ) -> CapitalAllocationResult:
        """Give each position a fixed margin, funding symbols in input order.

        When capital is short, the first positions in the list are funded and
        the rest are left out of the result entirely.

        Args:
            positions: Agent positions to copy, in priority order.
            fixed_amount_per_coin: Margin per symbol.
            max_total_margin: Optional cap on total margin.
            available_balance: Optional account balance cap.

        Returns:
            CapitalAllocationResult; empty with a warning when nothing is fundable.
        """
        valid_positions = [p for p in positions if p.margin > 0 and p.signed_quantity != 0]
        if not valid_positions or fixed_amount_per_coin <= 0:
            return CapitalAllocationResult.empty()

        usable_budget = min(
            max_total_margin if max_total_margin is not None else math.inf,
            available_balance if available_balance is not None else math.inf,
            fixed_amount_per_coin * len(valid_positions),
        )
        max_symbols = max(int(math.floor(usable_budget / fixed_amount_per_coin)), 0)
        funded = valid_positions[:max_symbols]

        if not funded:
            warning = (
                f"Insufficient margin for any position. Required: {fixed_amount_per_coin} USDT "
                f"per coin, Available: {usable_budget:.2f} USDT"
            )
            logger.warning(warning)
            return CapitalAllocationResult.empty(
                total_original_margin=sum(p.margin for p in valid_positions),
                warnings=[warning],
            )

        allocations = []
        for position in funded:
            notional_value = fixed_amount_per_coin * position.leverage
            allocations.append(
                CapitalAllocation(
                    symbol=position.symbol,
                    original_margin=position.margin,
                    allocated_margin=fixed_amount_per_coin,
                    notional_value=math.floor(notional_value),
                    adjusted_quantity=round_quantity(
                        notional_value / position.current_price, position.symbol
                    ),
                    allocation_ratio=1 / len(funded),
                    leverage=position.leverage,
                    side=position.side,
                )
            )

        result = CapitalAllocationResult(
            total_original_margin=sum(p.margin for p in funded),
            total_allocated_margin=sum(a.allocated_margin for a in allocations),
            total_notional_value=sum(a.notional_value for a in allocations),
            allocations=allocations,
        )

        skipped = len(valid_positions) - len(funded)
        if skipped:
            remaining = usable_budget - result.total_allocated_margin
            warning = (
                f"Used {result.total_allocated_margin:g} USDT for {len(funded)} positions, "
                f"remaining {remaining:.2f} USDT insufficient for {skipped} more "
                f"(requires {fixed_amount_per_coin} USDT each)"
            )
            logger.warning(warning)
            result.warnings.append(warning)

        return result

    def validate_allocation(
        self, result: CapitalAllocationResult, expected_total: float | None = None
    ) -> bool:
        """Check a proportional result.

        Ratios must sum to 1.0 within 1e-3, and the allocated total must be
        within 10 units of the budget. Floor truncation always pulls the total
        down, which is expected.
        """
        expected = expected_total if expected_total is not None else self._default_total_margin
        difference = abs(result.total_allocated_margin - expected)
        if difference > MARGIN_TOLERANCE:
            logger.warning(
                f"Margin allocation mismatch: expected {expected}, "
                f"got {result.total_allocated_margin}, difference: {difference}"
            )
            return False

        total_ratio = sum(a.allocation_ratio for a in result.allocations)
        if result.allocations and abs(total_ratio - 1.0) > RATIO_EPSILON:
            logger.warning(f"Allocation ratio sum is not 1.0: {total_ratio}")
            return False

        return True

    def validate_fixed_allocation(
        self, result: CapitalAllocationResult, expected_fixed_amount: float
    ) -> bool:
        """Check that every funded symbol received exactly the fixed amount."""
        for allocation in result.allocations:
            if allocation.allocated_margin != expected_fixed_amount:
                logger.warning(
                    f"Fixed amount allocation mismatch: expected {expected_fixed_amount}, "
                    f"got {allocation.allocated_margin} for {allocation.symbol}"
                )
                return False
        return True

    @staticmethod
    def format_amount(amount: float) -> str:
        return f"${amount:,.2f}"

    @staticmethod
    def format_percentage(ratio: float) -> str:
        return f"{ratio * 100:.2f}%"
