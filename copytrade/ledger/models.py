# copytrade/ledger/models.py
"""Data models for the order history ledger."""
from dataclasses import dataclass, field
from datetime import datetime, timezone

from copytrade.models.positions import Side


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProcessedOrderRecord:
    """An agent entry order the engine has already acted upon.

    Attributes:
        symbol: Symbol as reported by the signal source.
        entry_order_id: The agent's entry order id.
        timestamp: When the order was placed on the user's account.
        executed_quantity: Quantity submitted to the exchange.
        side: BUY or SELL.
        closed_at: When the position was closed by the agent (None while live).
    """

    symbol: str
    entry_order_id: str
    timestamp: datetime
    executed_quantity: float
    side: Side
    closed_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.closed_at is None


@dataclass
class ProfitExitRecord:
    """A symbol left via the profit target.

    Attributes:
        symbol: Symbol that exited.
        entry_order_id: Entry order id of the position that exited.
        reason: Human readable explanation.
        detected_at: When the exit was detected.
        pnl_percent: Return on margin at exit, if known.
    """

    symbol: str
    entry_order_id: str
    reason: str
    detected_at: datetime = field(default_factory=utc_now)
    pnl_percent: float | None = None


@dataclass
class ManualCloseRecord:
    """A position closed by the operator directly on the exchange."""

    symbol: str
    entry_order_id: str
    reason: str
    detected_at: datetime = field(default_factory=utc_now)


@dataclass
class OrderHistoryLedger:
    """Durable record of processed orders and lifecycle events.

    The ledger is a plain value: the orchestrator loads it at cycle start,
    mutates it and hands it back to the store to persist.
    """

    processed_orders: list[ProcessedOrderRecord] = field(default_factory=list)
    profit_exits: list[ProfitExitRecord] = field(default_factory=list)
    manual_closes: list[ManualCloseRecord] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)

    def _touch(self) -> None:
        self.last_updated = utc_now()

    def has_processed(self, symbol: str, entry_order_id: str) -> bool:
        """Check whether an entry order was already acted upon."""
        return any(
            r.symbol == symbol and r.entry_order_id == entry_order_id
            for r in self.processed_orders
        )

    def record_processed(self, record: ProcessedOrderRecord) -> None:
        """Add a processed order, replacing any record with the same key."""
        self.processed_orders = [
            r
            for r in self.processed_orders
            if not (r.symbol == record.symbol and r.entry_order_id == record.entry_order_id)
        ]
        self.processed_orders.append(record)
        self._touch()

    def remove_processed(self, symbol: str) -> int:
        """Delete every processed-order entry for a symbol.

        Returns:
            Number of records removed.
        """
        before = len(self.processed_orders)
        self.processed_orders = [r for r in self.processed_orders if r.symbol != symbol]
        removed = before - len(self.processed_orders)
        if removed:
            self._touch()
        return removed

    def mark_closed(self, symbol: str, closed_at: datetime | None = None) -> int:
        """Mark the live records for a symbol as closed.

        Returns:
            Number of records marked.
        """
        closed_at = closed_at or utc_now()
        marked = 0
        for record in self.processed_orders:
            if record.symbol == symbol and record.is_live:
                record.closed_at = closed_at
                marked += 1
        if marked:
            self._touch()
        return marked

    def record_profit_exit(self, record: ProfitExitRecord) -> None:
        self.profit_exits.append(record)
        self._touch()

    def record_manual_close(self, record: ManualCloseRecord) -> None:
        self.manual_closes.append(record)
        self._touch()

    def get_processed_orders(self, symbol: str) -> list[ProcessedOrderRecord]:
        return [r for r in self.processed_orders if r.symbol == symbol]

    def get_profit_exits(self, symbol: str) -> list[ProfitExitRecord]:
        return [r for r in self.profit_exits if r.symbol == symbol]

    def get_manual_closes(self, symbol: str) -> list[ManualCloseRecord]:
        return [r for r in self.manual_closes if r.symbol == symbol]

    def has_profit_exit(self, symbol: str, entry_order_id: str) -> bool:
        return any(
            r.symbol == symbol and r.entry_order_id == entry_order_id for r in self.profit_exits
        )

    def has_manual_close(self, symbol: str, entry_order_id: str) -> bool:
        return any(
            r.symbol == symbol and r.entry_order_id == entry_order_id for r in self.manual_closes
        )

    def live_orders(self) -> dict[str, ProcessedOrderRecord]:
        """Rebuild the previous signal snapshot from processed records.

        Returns:
            Latest live record per symbol, keyed by symbol.
        """
        live: dict[str, ProcessedOrderRecord] = {}
        for record in sorted(self.processed_orders, key=lambda r: r.timestamp):
            if record.is_live:
                live[record.symbol] = record
        return live
