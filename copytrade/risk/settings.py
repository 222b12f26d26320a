"""Settings for risk evaluation."""

from pydantic import BaseModel, Field


class RiskSettings(BaseModel):
    """Settings for price tolerance checks.

    Attributes:
        price_tolerance_pct: Default tolerance in percent.
        symbol_tolerances: Per-symbol overrides in percent.
    """

    price_tolerance_pct: float = Field(default=1.0, gt=0, le=100)
    symbol_tolerances: dict[str, float] = Field(default_factory=dict)
