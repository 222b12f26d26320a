# copytrade/execution/models.py
"""Data models for the execution system."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from copytrade.models.positions import Side


class MarginType(str, Enum):
    """Futures margin mode."""

    CROSSED = "CROSSED"
    ISOLATED = "ISOLATED"


@dataclass(frozen=True)
class OrderRequest:
    """An order to submit to the exchange.

    Attributes:
        symbol: Symbol as reported by the signal source.
        side: BUY or SELL.
        quantity: Unsigned order quantity.
        order_type: MARKET or LIMIT.
        reduce_only: Only reduce an existing position.
        leverage: Leverage to apply before the order, if any.
        price: Limit price (LIMIT orders only).
    """

    symbol: str
    side: Side
    quantity: float
    order_type: str = "MARKET"
    reduce_only: bool = False
    leverage: int | None = None
    price: float | None = None


@dataclass
class AccountInfo:
    """Futures wallet summary.

    Attributes:
        total_wallet_balance: Total balance in the quote currency.
        available_balance: Balance usable as new margin.
        total_unrealized_pnl: Sum of unrealized PnL across positions.
    """

    total_wallet_balance: float
    available_balance: float
    total_unrealized_pnl: float = 0.0


@dataclass
class ExecutionResult:
    """Result of an order execution attempt.

    Attributes:
        success: Did the order submit successfully?
        order_id: Exchange order ID (if success).
        symbol: Symbol as reported by the signal source.
        side: BUY or SELL.
        quantity: Quantity submitted.
        filled_price: Average fill price (if known).
        error_message: Error details (if failed).
        pnl_percent: Return on margin of the position closed (closing orders only).
        timestamp: When execution was attempted.
    """

    success: bool
    order_id: str | None
    symbol: str
    side: Side
    quantity: float
    filled_price: float | None
    error_message: str | None
    pnl_percent: float | None = None
    timestamp: datetime = field(default_factory=datetime.now)
