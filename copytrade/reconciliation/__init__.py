"""Position reconciliation between the signal source, ledger and broker."""

from .models import PositionStatus, ReconciliationEvent, ReconciliationResult
from .position_reconciler import PositionReconciler, reconcile_positions

__all__ = [
    "PositionReconciler",
    "PositionStatus",
    "ReconciliationEvent",
    "ReconciliationResult",
    "reconcile_positions",
]
