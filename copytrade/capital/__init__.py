"""Capital allocation for copied positions."""

from .capital_allocator import (
    CapitalAllocator,
    allocation_policy_from_options,
    assert_disjoint,
    quantity_precision,
    round_quantity,
    validate_allocation_options,
)
from .models import (
    AllocationPolicy,
    CapitalAllocation,
    CapitalAllocationResult,
    FixedAmountPolicy,
    ProportionalPolicy,
)
from .settings import CapitalSettings

__all__ = [
    "AllocationPolicy",
    "CapitalAllocation",
    "CapitalAllocationResult",
    "CapitalAllocator",
    "CapitalSettings",
    "FixedAmountPolicy",
    "ProportionalPolicy",
    "allocation_policy_from_options",
    "assert_disjoint",
    "quantity_precision",
    "round_quantity",
    "validate_allocation_options",
]
