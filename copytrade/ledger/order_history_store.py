# copytrade/ledger/order_history_store.py
"""Persistence layer for the order history ledger."""
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import aiofiles

from copytrade.exceptions import LedgerPersistenceError
from copytrade.ledger.models import (
    ManualCloseRecord,
    OrderHistoryLedger,
    ProcessedOrderRecord,
    ProfitExitRecord,
)
from copytrade.models.positions import Side

logger = logging.getLogger(__name__)

LEDGER_VERSION = 1


def _parse_time(value: str) -> datetime:
    """Parse an ISO timestamp as UTC; naive values are taken to be UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class OrderHistoryStore:
    """Stores and retrieves the order history ledger from a JSON file.

    Writes go to a sibling ``.tmp`` file which then replaces the ledger file,
    so a crash mid-write never leaves a truncated ledger behind.
    """

    def __init__(self, path: Path = Path("data/order-history.json")):
        """Initialize the store.

        Args:
            path: Location of the ledger file. Parent directories are created.
        """
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> OrderHistoryLedger:
        """Load the ledger.

        Returns:
            The stored ledger, or an empty one if the file is missing or corrupt.
        """
        if not self._path.exists():
            return OrderHistoryLedger()

        try:
            async with aiofiles.open(self._path, "r") as f:
                content = await f.read()
            return self._ledger_from_dict(json.loads(content))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Order history at {self._path} unreadable, starting empty: {e}")
            return OrderHistoryLedger()

    async def save(self, ledger: OrderHistoryLedger) -> None:
        """Persist the ledger atomically.

        Raises:
            LedgerPersistenceError: If the file could not be written.
        """
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        payload = json.dumps(self._ledger_to_dict(ledger), indent=2)
        try:
            async with aiofiles.open(temp_path, "w") as f:
                await f.write(payload)
                await f.flush()
            os.replace(temp_path, self._path)
        except OSError as e:
            raise LedgerPersistenceError(
                str(self._path), f"Failed to save order history to {self._path}: {e}"
            ) from e

    def _ledger_to_dict(self, ledger: OrderHistoryLedger) -> dict:
        return {
            "version": LEDGER_VERSION,
            "createdAt": ledger.created_at.isoformat(),
            "lastUpdated": ledger.last_updated.isoformat(),
            "processedOrders": [
                {
                    "symbol": r.symbol,
                    "entryOrderId": r.entry_order_id,
                    "timestamp": r.timestamp.isoformat(),
                    "executedQuantity": r.executed_quantity,
                    "side": r.side.value,
                    "closedAt": r.closed_at.isoformat() if r.closed_at else None,
                }
                for r in ledger.processed_orders
            ],
            "profitExits": [
                {
                    "symbol": r.symbol,
                    "entryOrderId": r.entry_order_id,
                    "reason": r.reason,
                    "detectedAt": r.detected_at.isoformat(),
                    "pnlPercent": r.pnl_percent,
                }
                for r in ledger.profit_exits
            ],
            "manualCloses": [
                {
                    "symbol": r.symbol,
                    "entryOrderId": r.entry_order_id,
                    "reason": r.reason,
                    "detectedAt": r.detected_at.isoformat(),
                }
                for r in ledger.manual_closes
            ],
        }

    def _ledger_from_dict(self, data: dict) -> OrderHistoryLedger:
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")

        ledger = OrderHistoryLedger(
            processed_orders=[
                ProcessedOrderRecord(
                    symbol=item["symbol"],
                    entry_order_id=str(item["entryOrderId"]),
                    timestamp=_parse_time(item["timestamp"]),
                    executed_quantity=float(item.get("executedQuantity", 0.0)),
                    side=Side(item["side"]),
                    closed_at=(
                        _parse_time(item["closedAt"]) if item.get("closedAt") else None
                    ),
                )
                for item in data.get("processedOrders", [])
            ],
            profit_exits=[
                ProfitExitRecord(
                    symbol=item["symbol"],
                    entry_order_id=str(item["entryOrderId"]),
                    reason=item.get("reason", ""),
                    detected_at=_parse_time(item["detectedAt"]),
                    pnl_percent=item.get("pnlPercent"),
                )
                for item in data.get("profitExits", [])
            ],
            manual_closes=[
                ManualCloseRecord(
                    symbol=item["symbol"],
                    entry_order_id=str(item["entryOrderId"]),
                    reason=item.get("reason", ""),
                    detected_at=_parse_time(item["detectedAt"]),
                )
                for item in data.get("manualCloses", [])
            ],
        )
        if data.get("createdAt"):
            ledger.created_at = _parse_time(data["createdAt"])
        if data.get("lastUpdated"):
            ledger.last_updated = _parse_time(data["lastUpdated"])
        return ledger
