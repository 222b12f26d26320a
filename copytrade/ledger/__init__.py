"""Order history ledger: idempotency records and lifecycle events."""

from .models import (
    ManualCloseRecord,
    OrderHistoryLedger,
    ProcessedOrderRecord,
    ProfitExitRecord,
)
from .order_history_store import OrderHistoryStore
from .settings import LedgerSettings

__all__ = [
    "LedgerSettings",
    "ManualCloseRecord",
    "OrderHistoryLedger",
    "OrderHistoryStore",
    "ProcessedOrderRecord",
    "ProfitExitRecord",
]
