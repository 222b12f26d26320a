# tests/ledger/test_order_history_store.py
"""Tests for OrderHistoryStore persistence."""
import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from copytrade.exceptions import LedgerPersistenceError
from copytrade.ledger.models import (
    ManualCloseRecord,
    OrderHistoryLedger,
    ProcessedOrderRecord,
    ProfitExitRecord,
)
from copytrade.ledger.order_history_store import OrderHistoryStore
from copytrade.models.positions import Side


def make_ledger() -> OrderHistoryLedger:
    """Create a ledger holding one record of each kind."""
    ledger = OrderHistoryLedger()
    ledger.record_processed(
        ProcessedOrderRecord(
            symbol="BTC",
            entry_order_id="210131632249",
            timestamp=datetime(2025, 10, 20, 12, 0, tzinfo=timezone.utc),
            executed_quantity=0.07,
            side=Side.BUY,
        )
    )
    ledger.record_profit_exit(
        ProfitExitRecord(symbol="ETH", entry_order_id="77", reason="target", pnl_percent=35.5)
    )
    ledger.record_manual_close(
        ManualCloseRecord(symbol="XRP", entry_order_id="88", reason="gone")
    )
    return ledger


class TestLoad:
    """Tests for loading the ledger."""

    @pytest.mark.asyncio
    async def test_missing_file_returns_empty_ledger(self, tmp_path):
        """First run starts with an empty ledger."""
        store = OrderHistoryStore(tmp_path / "data" / "order-history.json")

        ledger = await store.load()

        assert ledger.processed_orders == []
        assert ledger.profit_exits == []
        assert ledger.manual_closes == []

    def test_creates_parent_directory(self, tmp_path):
        OrderHistoryStore(tmp_path / "nested" / "dir" / "ledger.json")
        assert (tmp_path / "nested" / "dir").is_dir()

    @pytest.mark.asyncio
    async def test_corrupt_file_returns_empty_ledger(self, tmp_path):
        """Unparseable content is treated as an empty ledger."""
        path = tmp_path / "ledger.json"
        path.write_text("{not json")
        store = OrderHistoryStore(path)

        ledger = await store.load()

        assert ledger.processed_orders == []

    @pytest.mark.asyncio
    async def test_wrong_shape_returns_empty_ledger(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps({"processedOrders": [{"symbol": "BTC"}]}))
        store = OrderHistoryStore(path)

        ledger = await store.load()

        assert ledger.processed_orders == []

    @pytest.mark.asyncio
    async def test_naive_timestamps_read_as_utc(self, tmp_path):
        """Hand-edited files without offsets still sort against aware records."""
        path = tmp_path / "ledger.json"
        path.write_text(
            json.dumps(
                {
                    "processedOrders": [
                        {
                            "symbol": "BTC",
                            "entryOrderId": "1001",
                            "timestamp": "2025-10-20T12:00:00",
                            "executedQuantity": 0.07,
                            "side": "BUY",
                        },
                        {
                            "symbol": "BTC",
                            "entryOrderId": "1002",
                            "timestamp": "2025-10-20T14:00:00+02:00",
                            "executedQuantity": 0.07,
                            "side": "BUY",
                        },
                    ],
                    "lastUpdated": "2025-10-20T12:00:00",
                }
            )
        )
        store = OrderHistoryStore(path)

        ledger = await store.load()

        assert len(ledger.processed_orders) == 2
        assert all(r.timestamp.tzinfo == timezone.utc for r in ledger.processed_orders)
        assert ledger.last_updated.tzinfo == timezone.utc
        assert ledger.live_orders()["BTC"].entry_order_id == "1002"
        assert ledger.processed_orders[1].timestamp == datetime(
            2025, 10, 20, 12, 0, tzinfo=timezone.utc
        )


class TestSave:
    """Tests for saving the ledger."""

    @pytest.mark.asyncio
    async def test_save_then_load_preserves_records(self, tmp_path):
        store = OrderHistoryStore(tmp_path / "ledger.json")
        original = make_ledger()

        await store.save(original)
        loaded = await store.load()

        assert loaded.has_processed("BTC", "210131632249") is True
        assert loaded.processed_orders[0].side == Side.BUY
        assert loaded.processed_orders[0].executed_quantity == 0.07
        assert loaded.processed_orders[0].closed_at is None
        assert loaded.has_profit_exit("ETH", "77") is True
        assert loaded.profit_exits[0].pnl_percent == 35.5
        assert loaded.has_manual_close("XRP", "88") is True

    @pytest.mark.asyncio
    async def test_file_uses_camel_case_keys(self, tmp_path):
        """The on-disk format is versioned camelCase JSON."""
        path = tmp_path / "ledger.json"
        store = OrderHistoryStore(path)

        await store.save(make_ledger())
        data = json.loads(path.read_text())

        assert data["version"] == 1
        assert {"createdAt", "lastUpdated", "processedOrders", "profitExits", "manualCloses"} <= set(data)
        assert data["processedOrders"][0]["entryOrderId"] == "210131632249"
        assert data["processedOrders"][0]["side"] == "BUY"

    @pytest.mark.asyncio
    async def test_save_leaves_no_temp_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        store = OrderHistoryStore(path)

        await store.save(make_ledger())

        assert path.exists()
        assert not (tmp_path / "ledger.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_previous_file(self, tmp_path):
        """A failed write raises and leaves the old ledger intact."""
        path = tmp_path / "ledger.json"
        store = OrderHistoryStore(path)
        await store.save(OrderHistoryLedger())
        before = path.read_text()

        with patch(
            "copytrade.ledger.order_history_store.os.replace",
            side_effect=OSError("disk full"),
        ):
            with pytest.raises(LedgerPersistenceError) as exc_info:
                await store.save(make_ledger())

        assert path.read_text() == before
        assert exc_info.value.path == str(path)
