# tests/reconciliation/test_position_reconciler.py
"""Tests for position reconciliation."""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from copytrade.exceptions import ExchangeError
from copytrade.execution.base import ExchangeClient
from copytrade.ledger.models import (
    ManualCloseRecord,
    OrderHistoryLedger,
    ProcessedOrderRecord,
    ProfitExitRecord,
)
from copytrade.models.positions import BrokerPosition, Side, SignalPosition
from copytrade.reconciliation.models import PositionStatus
from copytrade.reconciliation.position_reconciler import (
    PositionReconciler,
    reconcile_positions,
)


BASE_TIME = datetime(2025, 10, 20, 12, 0, tzinfo=timezone.utc)


def make_signal(
    symbol: str = "BTC",
    entry_order_id: str = "1001",
    quantity: float = 0.05,
    margin: float = 250.0,
) -> SignalPosition:
    """Create a signal position with sensible defaults."""
    return SignalPosition(
        symbol=symbol,
        signed_quantity=quantity,
        leverage=20,
        margin=margin,
        entry_price=100.0,
        current_price=100.0,
        entry_order_id=entry_order_id,
    )


def make_broker(symbol: str = "BTC", quantity: float = 0.07) -> BrokerPosition:
    return BrokerPosition(
        symbol=symbol, quantity=quantity, entry_price=100.0, leverage=20, margin=10.0
    )


def ledger_with(*records: tuple[str, str]) -> OrderHistoryLedger:
    """Build a ledger with live processed records for (symbol, id) pairs."""
    ledger = OrderHistoryLedger()
    for i, (symbol, entry_order_id) in enumerate(records):
        ledger.record_processed(
            ProcessedOrderRecord(
                symbol=symbol,
                entry_order_id=entry_order_id,
                timestamp=BASE_TIME + timedelta(minutes=i),
                executed_quantity=0.07,
                side=Side.BUY,
            )
        )
    return ledger


def status_of(result, symbol: str) -> PositionStatus:
    return next(e.status for e in result.events if e.symbol == symbol)


class TestReconcilePositions:
    """Tests for the pure classification function."""

    def test_unknown_entry_id_is_new(self):
        result = reconcile_positions([make_signal()], OrderHistoryLedger())

        assert status_of(result, "BTC") == PositionStatus.NEW
        assert [p.symbol for p in result.new_positions] == ["BTC"]

    def test_processed_entry_id_is_unchanged(self):
        """Reprocessing the same snapshot never re-enters."""
        ledger = ledger_with(("BTC", "1001"))

        result = reconcile_positions([make_signal()], ledger, [make_broker()])

        assert status_of(result, "BTC") == PositionStatus.UNCHANGED
        assert result.new_positions == []

    def test_changed_entry_id_is_new(self):
        """A new entry order id for a followed symbol is a new position."""
        ledger = ledger_with(("BTC", "1001"))

        result = reconcile_positions([make_signal(entry_order_id="1002")], ledger)

        assert status_of(result, "BTC") == PositionStatus.NEW

    def test_symbol_missing_from_signal_is_agent_closed(self):
        ledger = ledger_with(("BTC", "1001"), ("ETH", "2001"))

        result = reconcile_positions([make_signal("BTC", "1001")], ledger)

        assert status_of(result, "ETH") == PositionStatus.AGENT_CLOSED
        closed = result.by_status(PositionStatus.AGENT_CLOSED)[0]
        assert closed.signal is None
        assert closed.entry_order_id == "2001"

    def test_zero_quantity_signal_is_agent_closed(self):
        ledger = ledger_with(("BTC", "1001"))

        result = reconcile_positions([make_signal(quantity=0)], ledger)

        assert status_of(result, "BTC") == PositionStatus.AGENT_CLOSED

    def test_zero_quantity_without_history_is_unchanged(self):
        result = reconcile_positions([make_signal(quantity=0)], OrderHistoryLedger())

        assert status_of(result, "BTC") == PositionStatus.UNCHANGED

    def test_closed_record_is_not_reported_again(self):
        """AGENT_CLOSED fires once; afterwards the record is no longer live."""
        ledger = ledger_with(("BTC", "1001"))
        ledger.mark_closed("BTC")

        result = reconcile_positions([], ledger)

        assert result.events == []

    def test_broker_flat_is_manual_closed(self):
        ledger = ledger_with(("BTC", "1001"))

        result = reconcile_positions([make_signal()], ledger, broker_positions=[])

        assert status_of(result, "BTC") == PositionStatus.MANUAL_CLOSED
        assert result.manual_close_checked is True

    def test_manual_close_reported_once_per_entry_id(self):
        ledger = ledger_with(("BTC", "1001"))
        ledger.record_manual_close(
            ManualCloseRecord(symbol="BTC", entry_order_id="1001", reason="gone")
        )

        result = reconcile_positions([make_signal()], ledger, broker_positions=[])

        assert status_of(result, "BTC") == PositionStatus.UNCHANGED

    def test_relisted_after_agent_close_is_not_manual_closed(self):
        """A symbol dropped for one poll and listed again with the same id."""
        ledger = ledger_with(("BTC", "1001"))

        dropped = reconcile_positions([], ledger, [make_broker()])
        assert status_of(dropped, "BTC") == PositionStatus.AGENT_CLOSED
        ledger.mark_closed("BTC")

        relisted = reconcile_positions([make_signal()], ledger, broker_positions=[])

        assert status_of(relisted, "BTC") == PositionStatus.UNCHANGED
        assert relisted.new_positions == []
        assert relisted.by_status(PositionStatus.MANUAL_CLOSED) == []

    def test_no_manual_close_without_broker_data(self):
        """Without broker positions the check is skipped entirely."""
        ledger = ledger_with(("BTC", "1001"))

        result = reconcile_positions([make_signal()], ledger, broker_positions=None)

        assert status_of(result, "BTC") == PositionStatus.UNCHANGED
        assert result.manual_close_checked is False

    def test_exited_entry_id_is_not_reentered_after_reset(self):
        """A cleared ledger only re-arms a future entry order id."""
        ledger = OrderHistoryLedger()
        ledger.record_profit_exit(
            ProfitExitRecord(symbol="BTC", entry_order_id="1001", reason="target")
        )

        same = reconcile_positions([make_signal(entry_order_id="1001")], ledger, [])
        newer = reconcile_positions([make_signal(entry_order_id="1002")], ledger, [])

        assert status_of(same, "BTC") == PositionStatus.UNCHANGED
        assert status_of(newer, "BTC") == PositionStatus.NEW

    def test_duplicate_symbols_keep_first(self):
        result = reconcile_positions(
            [make_signal("BTC", "1"), make_signal("BTC", "2")], OrderHistoryLedger()
        )

        assert len(result.events) == 1
        assert result.events[0].entry_order_id == "1"

    def test_new_positions_preserve_signal_order(self):
        signals = [make_signal("XRP", "3"), make_signal("BTC", "1"), make_signal("ETH", "2")]

        result = reconcile_positions(signals, OrderHistoryLedger())

        assert [p.symbol for p in result.new_positions] == ["XRP", "BTC", "ETH"]

    def test_ledger_is_not_mutated(self):
        ledger = ledger_with(("ETH", "2001"))
        before = list(ledger.processed_orders)
        updated = ledger.last_updated

        reconcile_positions([make_signal()], ledger, [])

        assert ledger.processed_orders == before
        assert ledger.last_updated == updated


@pytest.fixture
def mock_exchange():
    """Mock ExchangeClient for testing."""
    client = Mock(spec=ExchangeClient)
    client.get_all_positions = AsyncMock(return_value=[make_broker()])
    return client


class TestPositionReconciler:
    """Tests for the broker-aware wrapper."""

    @pytest.mark.asyncio
    async def test_reconcile_uses_broker_positions(self, mock_exchange):
        mock_exchange.get_all_positions.return_value = []
        reconciler = PositionReconciler(mock_exchange)

        result = await reconciler.reconcile([make_signal()], ledger_with(("BTC", "1001")))

        assert status_of(result, "BTC") == PositionStatus.MANUAL_CLOSED
        mock_exchange.get_all_positions.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_detection_disabled_skips_broker_query(self, mock_exchange):
        reconciler = PositionReconciler(mock_exchange, detect_manual_close=False)

        result = await reconciler.reconcile([make_signal()], ledger_with(("BTC", "1001")))

        assert result.manual_close_checked is False
        mock_exchange.get_all_positions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broker_failure_disables_manual_close_check(self, mock_exchange):
        """A failed broker query never produces a false manual close."""
        mock_exchange.get_all_positions.side_effect = ExchangeError("timeout")
        reconciler = PositionReconciler(mock_exchange)

        result = await reconciler.reconcile([make_signal()], ledger_with(("BTC", "1001")))

        assert status_of(result, "BTC") == PositionStatus.UNCHANGED
        assert result.manual_close_checked is False
