# copytrade/reconciliation/position_reconciler.py
"""Diffs the signal snapshot against the ledger and the broker account."""
import logging

from copytrade.execution.base import ExchangeClient
from copytrade.ledger.models import OrderHistoryLedger
from copytrade.models.positions import BrokerPosition, SignalPosition
from copytrade.reconciliation.models import (
    PositionStatus,
    ReconciliationEvent,
    ReconciliationResult,
)

logger = logging.getLogger(__name__)


def reconcile_positions(
    signal_positions: list[SignalPosition],
    ledger: OrderHistoryLedger,
    broker_positions: list[BrokerPosition] | None = None,
) -> ReconciliationResult:
    """Classify every symbol as NEW, UNCHANGED, AGENT_CLOSED or MANUAL_CLOSED.

    Pure function over immutable snapshots; the ledger is only read.

    Rules, per symbol:
    1. Live signal whose entry order id is unknown to the ledger -> NEW,
       unless that exact (symbol, entry_order_id) already exited via profit
       target or manual close. A ledger reset only re-arms a future id.
    2. Symbol with a live ledger record but absent from the signal -> AGENT_CLOSED.
    3. Same entry order id still listed with non-zero quantity, its ledger record
       still live, while the broker reports no position -> MANUAL_CLOSED (once
       per entry order id). A record we already closed ourselves never counts.
    4. Anything else -> UNCHANGED.

    Args:
        signal_positions: Current snapshot from the signal source.
        ledger: Ledger as loaded at cycle start.
        broker_positions: Live broker positions, or None when manual-close
            detection is disabled or the broker query failed.

    Returns:
        ReconciliationResult with one event per symbol.
    """
    live_records = ledger.live_orders()
    broker_by_symbol = {
        p.symbol: p for p in (broker_positions or []) if p.is_open
    }

    result = ReconciliationResult(manual_close_checked=broker_positions is not None)
    seen: set[str] = set()

    for signal in signal_positions:
        if signal.symbol in seen:
            logger.warning(f"Duplicate signal for {signal.symbol} ignored")
            continue
        seen.add(signal.symbol)

        previous = live_records.get(signal.symbol)
        broker = broker_by_symbol.get(signal.symbol)

        if not signal.is_live:
            status = PositionStatus.AGENT_CLOSED if previous else PositionStatus.UNCHANGED
        elif not ledger.has_processed(signal.symbol, signal.entry_order_id):
            if _already_exited(ledger, signal):
                status = PositionStatus.UNCHANGED
            else:
                status = PositionStatus.NEW
        elif (
            broker_positions is not None
            and broker is None
            and previous is not None
            and previous.entry_order_id == signal.entry_order_id
            and not ledger.has_manual_close(signal.symbol, signal.entry_order_id)
            and not ledger.has_profit_exit(signal.symbol, signal.entry_order_id)
        ):
            status = PositionStatus.MANUAL_CLOSED
        else:
            status = PositionStatus.UNCHANGED

        result.events.append(
            ReconciliationEvent(
                symbol=signal.symbol,
                status=status,
                signal=signal,
                previous=previous,
                broker=broker,
            )
        )

    for symbol, record in live_records.items():
        if symbol in seen:
            continue
        result.events.append(
            ReconciliationEvent(
                symbol=symbol,
                status=PositionStatus.AGENT_CLOSED,
                previous=record,
                broker=broker_by_symbol.get(symbol),
            )
        )

    return result


def _already_exited(ledger: OrderHistoryLedger, signal: SignalPosition) -> bool:
    return ledger.has_profit_exit(signal.symbol, signal.entry_order_id) or ledger.has_manual_close(
        signal.symbol, signal.entry_order_id
    )


class PositionReconciler:
    """Runs reconciliation with the broker query needed for manual-close detection.

    Attributes:
        detect_manual_close: Whether to query the broker each cycle.
    """

    def __init__(self, exchange_client: ExchangeClient, detect_manual_close: bool = True):
        self._exchange = exchange_client
        self.detect_manual_close = detect_manual_close

    async def fetch_broker_positions(self) -> list[BrokerPosition] | None:
        """Fetch broker positions, or None if detection is off or the query failed."""
        if not self.detect_manual_close:
            return None
        try:
            return await self._exchange.get_all_positions()
        except Exception as e:
            logger.warning(f"Broker position query failed, skipping manual-close check: {e}")
            return None

    async def reconcile(
        self,
        signal_positions: list[SignalPosition],
        ledger: OrderHistoryLedger,
    ) -> ReconciliationResult:
        """Classify the current signal snapshot.

        Args:
            signal_positions: Current snapshot from the signal source.
            ledger: Ledger as loaded at cycle start.

        Returns:
            ReconciliationResult for this cycle.
        """
        broker_positions = await self.fetch_broker_positions()
        result = reconcile_positions(signal_positions, ledger, broker_positions)

        counts = {status: len(result.by_status(status)) for status in PositionStatus}
        logger.info(
            "Reconciled %d symbols: %d new, %d unchanged, %d agent-closed, %d manual-closed",
            len(result.events),
            counts[PositionStatus.NEW],
            counts[PositionStatus.UNCHANGED],
            counts[PositionStatus.AGENT_CLOSED],
            counts[PositionStatus.MANUAL_CLOSED],
        )
        return result
