"""Data models for position reconciliation."""

from dataclasses import dataclass, field
from enum import Enum

from copytrade.ledger.models import ProcessedOrderRecord
from copytrade.models.positions import BrokerPosition, SignalPosition


class PositionStatus(str, Enum):
    """Classification of a symbol for the current poll."""

    NEW = "new"
    UNCHANGED = "unchanged"
    AGENT_CLOSED = "agent_closed"
    MANUAL_CLOSED = "manual_closed"


@dataclass(frozen=True)
class ReconciliationEvent:
    """Outcome of reconciling one symbol.

    Attributes:
        symbol: Symbol being classified.
        status: Classification.
        signal: Current signal position (None when the agent closed it).
        previous: Live ledger record from earlier polls, if any.
        broker: Broker position, if one was reported.
    """

    symbol: str
    status: PositionStatus
    signal: SignalPosition | None = None
    previous: ProcessedOrderRecord | None = None
    broker: BrokerPosition | None = None

    @property
    def entry_order_id(self) -> str | None:
        if self.signal is not None:
            return self.signal.entry_order_id
        if self.previous is not None:
            return self.previous.entry_order_id
        return None


@dataclass
class ReconciliationResult:
    """All events for one poll, in signal order followed by closed symbols."""

    events: list[ReconciliationEvent] = field(default_factory=list)
    manual_close_checked: bool = False

    def by_status(self, status: PositionStatus) -> list[ReconciliationEvent]:
        return [e for e in self.events if e.status == status]

    @property
    def new_positions(self) -> list[SignalPosition]:
        """Signals that need an order, in the order the source listed them."""
        return [e.signal for e in self.by_status(PositionStatus.NEW) if e.signal is not None]
