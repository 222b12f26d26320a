"""Settings for capital allocation."""

from pydantic import BaseModel, Field, model_validator

from copytrade.capital.capital_allocator import allocation_policy_from_options
from copytrade.capital.models import AllocationPolicy


class CapitalSettings(BaseModel):
    """Capital policy options.

    Exactly one of total_margin or fixed_amount_per_coin may be set; when
    neither is set the proportional policy with the default budget is used.

    Attributes:
        total_margin: Proportional budget in USDT.
        fixed_amount_per_coin: Fixed margin per symbol in USDT.
        max_total_margin: Cap on total margin for the fixed policy.
        default_total_margin: Proportional budget when total_margin is unset.
    """

    total_margin: float | None = Field(default=None, gt=0)
    fixed_amount_per_coin: float | None = Field(default=None, gt=0)
    max_total_margin: float | None = Field(default=None, gt=0)
    default_total_margin: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def check_disjoint(self) -> "CapitalSettings":
        """Reject settings that request both allocation strategies."""
        if self.total_margin is not None and self.fixed_amount_per_coin is not None:
            raise ValueError(
                "Cannot specify both total_margin and fixed_amount_per_coin"
            )
        return self

    def to_policy(self, available_balance: float | None = None) -> AllocationPolicy:
        """Build the allocation policy for a cycle."""
        return allocation_policy_from_options(
            total_margin=self.total_margin,
            fixed_amount_per_coin=self.fixed_amount_per_coin,
            max_total_margin=self.max_total_margin,
            available_balance=available_balance,
        )
