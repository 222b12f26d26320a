# copytrade/models/positions.py
"""Position snapshots reported by the signal source and the broker."""
from dataclasses import dataclass
from enum import Enum


class Side(str, Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def from_quantity(cls, quantity: float) -> "Side":
        """Derive the side from a signed quantity (> 0 is BUY, < 0 is SELL).

        Raises:
            ValueError: If quantity is zero.
        """
        if quantity > 0:
            return cls.BUY
        if quantity < 0:
            return cls.SELL
        raise ValueError("Cannot derive a side from zero quantity")

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


@dataclass(frozen=True)
class SignalPosition:
    """One agent position as reported by the signal source.

    Identity is the symbol; entry_order_id tells one opening event from the
    next. A changed id for the same symbol is a new position.

    Attributes:
        symbol: Coin or pair symbol as reported (e.g. "BTC").
        signed_quantity: Position size; the sign encodes the side.
        leverage: Integer leverage, at least 1.
        margin: Margin committed by the agent (> 0 for live positions).
        entry_price: Agent's average entry price.
        current_price: Mark price when the snapshot was taken.
        entry_order_id: Identifier of the opening order.
        take_profit_order_id: Take-profit order id (-1 when none).
        stop_loss_order_id: Stop-loss order id (-1 when none).
        profit_target: Exit-plan take-profit price, if published.
        stop_loss: Exit-plan stop price, if published.
    """

    symbol: str
    signed_quantity: float
    leverage: int
    margin: float
    entry_price: float
    current_price: float
    entry_order_id: str
    take_profit_order_id: str | None = None
    stop_loss_order_id: str | None = None
    profit_target: float | None = None
    stop_loss: float | None = None

    @property
    def is_live(self) -> bool:
        """True when the position has both size and margin."""
        return self.signed_quantity != 0 and self.margin > 0

    @property
    def side(self) -> Side:
        return Side.from_quantity(self.signed_quantity)


@dataclass(frozen=True)
class BrokerPosition:
    """The user's live exchange position for a symbol.

    Attributes:
        symbol: Symbol in the same form the signal source uses.
        quantity: Signed position size (0 when flat).
        entry_price: Average entry price.
        leverage: Leverage applied on the exchange.
        margin: Margin held by the position.
        unrealized_pnl: Unrealized profit/loss in quote currency.
    """

    symbol: str
    quantity: float
    entry_price: float
    leverage: int
    margin: float
    unrealized_pnl: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.quantity != 0

    @property
    def pnl_percent(self) -> float:
        """Return on margin in percent (0.0 when margin is unknown)."""
        if self.margin <= 0:
            return 0.0
        return self.unrealized_pnl / self.margin * 100
