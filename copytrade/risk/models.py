"""Data models for risk management."""

from dataclasses import dataclass, field
from datetime import datetime

from copytrade.models.positions import Side


@dataclass
class TradingPlan:
    """An order the engine intends to place.

    Attributes:
        symbol: Symbol to trade.
        side: BUY or SELL.
        quantity: Order quantity.
        leverage: Leverage to apply.
        order_type: Exchange order type.
        plan_id: Free-form identifier, usually the agent's entry order id.
        timestamp: When the plan was built.
    """

    symbol: str
    side: Side
    quantity: float
    leverage: int
    order_type: str = "MARKET"
    plan_id: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class PriceToleranceResult:
    """Result of checking price drift since the signal was observed.

    Attributes:
        entry_price: Price at which the agent entered.
        current_price: Market price now.
        price_difference: Absolute drift in percent.
        directional_price_difference: Signed drift in percent (positive: price up).
        tolerance: Tolerance threshold in percent.
        within_tolerance: Whether the absolute drift is within tolerance.
        favorable_for_execution: Whether the drift gives a better entry for the side.
        should_execute: Final decision.
        reason: Human readable explanation.
        side: Side considered, if any.
    """

    entry_price: float
    current_price: float
    price_difference: float
    directional_price_difference: float
    tolerance: float
    within_tolerance: bool
    favorable_for_execution: bool
    should_execute: bool
    reason: str
    side: Side | None = None


@dataclass
class RiskAssessment:
    """Overall verdict for a trading plan.

    Attributes:
        is_valid: Whether the plan may be executed.
        risk_score: Leverage-based score from 0 to 100 (informational).
        warnings: Non-blocking warnings, plus the tolerance failure reason.
        max_loss: Rough loss estimate.
        suggested_position_size: Quantity the plan may use.
        price_tolerance: Tolerance check, when one was run.
    """

    is_valid: bool
    risk_score: float
    warnings: list[str] = field(default_factory=list)
    max_loss: float = 0.0
    suggested_position_size: float = 0.0
    price_tolerance: PriceToleranceResult | None = None
