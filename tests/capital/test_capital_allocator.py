# tests/capital/test_capital_allocator.py
"""Tests for CapitalAllocator."""
import pytest

from copytrade.capital.capital_allocator import (
    CapitalAllocator,
    allocation_policy_from_options,
    quantity_precision,
    round_quantity,
    validate_allocation_options,
)
from copytrade.capital.models import FixedAmountPolicy, ProportionalPolicy
from copytrade.exceptions import ConfigurationError
from copytrade.models.positions import Side, SignalPosition


def make_position(
    symbol: str,
    quantity: float,
    margin: float,
    current_price: float,
    entry_price: float | None = None,
    leverage: int = 20,
    entry_order_id: str = "1",
) -> SignalPosition:
    """Create a signal position for allocation tests."""
    return SignalPosition(
        symbol=symbol,
        signed_quantity=quantity,
        leverage=leverage,
        margin=margin,
        entry_price=entry_price or current_price,
        current_price=current_price,
        entry_order_id=entry_order_id,
    )


@pytest.fixture
def positions():
    """Three agent positions: two longs and one short."""
    return [
        make_position("BTCUSDT", 0.05, 248.66, 109089.5, 109538, entry_order_id="210131632249"),
        make_position("ETHUSDT", 1.4, 205.80, 3845.25, 3891.1, entry_order_id="210171486282"),
        make_position("XRPUSDT", -1504, 201.16, 2.38415, 2.3989, entry_order_id="209211935882"),
    ]


@pytest.fixture
def allocator():
    return CapitalAllocator()


class TestQuantityRounding:
    def test_known_precisions(self):
        assert quantity_precision("BTC") == 3
        assert quantity_precision("BTCUSDT") == 3
        assert quantity_precision("XRP") == 1
        assert quantity_precision("DOGEUSDT") == 0

    def test_unknown_symbol_defaults_to_three(self):
        assert quantity_precision("PEPEUSDT") == 3

    def test_round_half_up(self):
        assert round_quantity(0.06954, "BTC") == pytest.approx(0.070)
        assert round_quantity(2573.94, "XRP") == pytest.approx(2573.9)
        assert round_quantity(12.5, "DOGE") == 13


class TestProportionalAllocation:
    """Tests for allocate_margin."""

    def test_allocates_in_proportion(self, allocator, positions):
        result = allocator.allocate_margin(positions, total_margin=1000)

        assert result.total_original_margin == pytest.approx(655.62, abs=0.01)
        assert result.total_allocated_margin == 998

        btc = result.get("BTCUSDT")
        assert btc.allocated_margin == 379
        assert btc.notional_value == 7585
        assert btc.allocation_ratio == pytest.approx(0.3794, abs=1e-3)
        assert btc.side == Side.BUY

        eth = result.get("ETHUSDT")
        assert eth.allocated_margin == 313
        assert eth.notional_value == 6278
        assert eth.allocation_ratio == pytest.approx(0.3139, abs=1e-3)
        assert eth.side == Side.BUY

        xrp = result.get("XRPUSDT")
        assert xrp.allocated_margin == 306
        assert xrp.notional_value == 6136
        assert xrp.allocation_ratio == pytest.approx(0.3067, abs=1e-3)
        assert xrp.side == Side.SELL

    def test_adjusted_quantities(self, allocator, positions):
        result = allocator.allocate_margin(positions, total_margin=1000)

        assert result.get("BTCUSDT").adjusted_quantity == pytest.approx(0.07, abs=1e-4)
        assert result.get("ETHUSDT").adjusted_quantity == pytest.approx(1.633, abs=1e-3)
        assert result.get("XRPUSDT").adjusted_quantity == pytest.approx(2574, abs=0.5)

    def test_never_exceeds_budget(self, allocator, positions):
        for budget in (10, 99.99, 1000, 12345.67):
            result = allocator.allocate_margin(positions, total_margin=budget)
            assert result.total_allocated_margin <= budget

    def test_ratios_sum_to_one(self, allocator, positions):
        result = allocator.allocate_margin(positions, total_margin=1000)

        assert abs(sum(a.allocation_ratio for a in result.allocations) - 1.0) < 1e-3
        assert allocator.validate_allocation(result, 1000) is True

    def test_keeps_agent_leverage(self, allocator, positions):
        result = allocator.allocate_margin(positions, total_margin=1000)

        for allocation in result.allocations:
            assert allocation.leverage == 20

    def test_empty_positions(self, allocator):
        result = allocator.allocate_margin([], total_margin=1000)

        assert result.total_original_margin == 0
        assert result.total_allocated_margin == 0
        assert result.total_notional_value == 0
        assert result.allocations == []

    def test_zero_margin_positions_ignored(self, allocator, positions):
        with_zero = positions + [make_position("TESTUSDT", 1, 0, 105)]

        result = allocator.allocate_margin(with_zero, total_margin=1000)

        assert len(result.allocations) == 3
        assert result.get("TESTUSDT") is None

    def test_default_budget(self, allocator, positions):
        result = allocator.allocate_margin(positions)

        assert result.total_allocated_margin == 9

    def test_changed_default_budget(self, allocator, positions):
        allocator.set_default_total_margin(2000)

        result = allocator.allocate_margin(positions)

        assert allocator.default_total_margin == 2000
        assert result.total_allocated_margin == 1998

    @pytest.mark.parametrize("margin", [0, -100])
    def test_invalid_default_budget(self, allocator, margin):
        with pytest.raises(ConfigurationError, match="Total margin must be positive"):
            allocator.set_default_total_margin(margin)

    def test_budget_reduced_to_available_balance(self, allocator, positions):
        result = allocator.allocate_margin(positions, total_margin=1000, available_balance=500)

        assert result.total_allocated_margin <= 500
        assert any("Insufficient available balance" in w for w in result.warnings)

    def test_zero_available_balance_allocates_nothing(self, allocator, positions):
        result = allocator.allocate_margin(positions, total_margin=1000, available_balance=0)

        assert result.total_allocated_margin == 0
        assert result.warnings


class TestFixedAllocation:
    """Tests for allocate_fixed_margin."""

    def test_fixed_amount_per_coin(self, allocator, positions):
        result = allocator.allocate_fixed_margin(positions, 100)

        assert len(result.allocations) == 3
        for allocation in result.allocations:
            assert allocation.allocated_margin == 100
            assert allocation.notional_value == 100 * allocation.leverage
            assert allocation.adjusted_quantity > 0
        assert allocator.validate_fixed_allocation(result, 100) is True

    def test_max_total_margin_limits_symbols(self, allocator, positions):
        result = allocator.allocate_fixed_margin(positions, 100, max_total_margin=250)

        assert [a.symbol for a in result.allocations] == ["BTCUSDT", "ETHUSDT"]
        assert result.total_allocated_margin == 200
        assert result.warnings

    def test_available_balance_limits_symbols(self, allocator, positions):
        result = allocator.allocate_fixed_margin(positions, 100, available_balance=150)

        assert len(result.allocations) == 1
        assert result.total_allocated_margin == 100

    def test_nothing_fundable(self, allocator, positions):
        result = allocator.allocate_fixed_margin(positions, 100, available_balance=50)

        assert result.allocations == []
        assert result.warnings[0].startswith("Insufficient margin for any position")

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_amount(self, allocator, positions, amount):
        result = allocator.allocate_fixed_margin(positions, amount)

        assert result.allocations == []
        assert result.total_allocated_margin == 0

    def test_keeps_side_and_leverage(self, allocator, positions):
        result = allocator.allocate_fixed_margin(positions, 100)

        assert result.get("XRPUSDT").side == Side.SELL
        assert all(a.leverage == 20 for a in result.allocations)

    def test_detects_wrong_fixed_amount(self, allocator, positions):
        result = allocator.allocate_fixed_margin(positions, 100)
        result.allocations[0].allocated_margin = 150

        assert allocator.validate_fixed_allocation(result, 100) is False


class TestPolicies:
    def test_allocate_dispatches_on_policy(self, allocator, positions):
        fixed = allocator.allocate(positions, FixedAmountPolicy(amount_per_coin=100))
        proportional = allocator.allocate(positions, ProportionalPolicy(total_margin=1000))

        assert fixed.total_allocated_margin == 300
        assert proportional.total_allocated_margin == 998

    def test_policy_from_options(self):
        assert isinstance(allocation_policy_from_options(total_margin=1000), ProportionalPolicy)
        assert isinstance(allocation_policy_from_options(fixed_amount_per_coin=50), FixedAmountPolicy)

    def test_policy_rejects_both_options(self):
        with pytest.raises(ConfigurationError, match="Cannot specify both"):
            allocation_policy_from_options(total_margin=1000, fixed_amount_per_coin=100)


class TestValidateOptions:
    def test_valid_options(self):
        assert validate_allocation_options(total_margin=1000) == (True, None)
        assert validate_allocation_options(fixed_amount_per_coin=100) == (True, None)
        assert validate_allocation_options() == (True, None)

    def test_conflicting_options(self):
        valid, error = validate_allocation_options(1000, 100)

        assert valid is False
        assert "Cannot specify both totalMargin and fixedAmountPerCoin" in error

    @pytest.mark.parametrize("value", [0, -100])
    def test_invalid_total_margin(self, value):
        valid, error = validate_allocation_options(total_margin=value)

        assert valid is False
        assert "totalMargin must be greater than 0" in error

    @pytest.mark.parametrize("value", [0, -50])
    def test_invalid_fixed_amount(self, value):
        valid, error = validate_allocation_options(fixed_amount_per_coin=value)

        assert valid is False
        assert "fixedAmountPerCoin must be greater than 0" in error


class TestFormatting:
    def test_format_amount(self):
        assert CapitalAllocator.format_amount(1234.567) == "$1,234.57"
        assert CapitalAllocator.format_amount(1000) == "$1,000.00"

    def test_format_percentage(self):
        assert CapitalAllocator.format_percentage(0.3796) == "37.96%"
        assert CapitalAllocator.format_percentage(1) == "100.00%"
