"""Auto-refollow controller for profit-target exits and manual closes."""

import logging

from copytrade.ledger.models import ManualCloseRecord, OrderHistoryLedger, ProfitExitRecord
from copytrade.reconciliation.models import ReconciliationEvent
from copytrade.refollow.models import FollowState, RefollowOutcome

logger = logging.getLogger(__name__)

MANUAL_CLOSE_REASON = "signal source shows a position but broker has none"


class AutoRefollowController:
    """Drives the per-symbol lifecycle after a symbol stops being followed.

    FOLLOWING -> {PROFIT_EXITED | MANUAL_CLOSED} -> RESET -> FOLLOWING(new id)

    Audit records are always appended. Processed orders are removed only
    when auto-refollow is enabled, and only for the affected symbol. This is
    the only place ledger entries are removed.

    Attributes:
        auto_refollow: Whether to clear the ledger after an exit.
        profit_target_pct: Return on margin (%) that counts as a profit exit.
    """

    def __init__(self, auto_refollow: bool = False, profit_target_pct: float | None = None):
        self.auto_refollow = auto_refollow
        self.profit_target_pct = profit_target_pct

    def profit_target_met(self, pnl_percent: float | None) -> bool:
        """Check whether a return on margin reaches the configured target."""
        if self.profit_target_pct is None or pnl_percent is None:
            return False
        return pnl_percent >= self.profit_target_pct

    def on_manual_close(
        self, ledger: OrderHistoryLedger, event: ReconciliationEvent
    ) -> RefollowOutcome:
        """Handle a MANUAL_CLOSED event.

        Args:
            ledger: Ledger to mutate.
            event: The reconciliation event.

        Returns:
            RefollowOutcome describing the resulting state.
        """
        entry_order_id = event.entry_order_id or ""
        ledger.record_manual_close(
            ManualCloseRecord(
                symbol=event.symbol,
                entry_order_id=entry_order_id,
                reason=MANUAL_CLOSE_REASON,
            )
        )
        logger.warning(f"Manual close detected for {event.symbol} (entry order {entry_order_id})")
        return self._maybe_reset(ledger, event.symbol, FollowState.MANUAL_CLOSED)

    def on_agent_closed(
        self,
        ledger: OrderHistoryLedger,
        event: ReconciliationEvent,
        realized_pnl_percent: float | None = None,
    ) -> RefollowOutcome:
        """Handle an AGENT_CLOSED event.

        A profit exit is recorded when a target is configured and the closing
        trade met it. Otherwise the live record is marked closed and kept.

        Args:
            ledger: Ledger to mutate.
            event: The reconciliation event.
            realized_pnl_percent: Return on margin of the closing trade, if known.

        Returns:
            RefollowOutcome describing the resulting state.
        """
        if self.profit_target_met(realized_pnl_percent):
            return self.on_profit_target(
                ledger,
                event.symbol,
                event.entry_order_id or "",
                realized_pnl_percent,
                reason=(
                    f"Agent closed position at {realized_pnl_percent:.2f}% "
                    f"(target {self.profit_target_pct}%)"
                ),
            )

        ledger.mark_closed(event.symbol)
        return RefollowOutcome(symbol=event.symbol, state=FollowState.IDLE)

    def on_profit_target(
        self,
        ledger: OrderHistoryLedger,
        symbol: str,
        entry_order_id: str,
        pnl_percent: float | None,
        reason: str | None = None,
    ) -> RefollowOutcome:
        """Record a profit-target exit and reset the symbol if enabled."""
        ledger.record_profit_exit(
            ProfitExitRecord(
                symbol=symbol,
                entry_order_id=entry_order_id,
                reason=reason or f"Profit target {self.profit_target_pct}% reached",
                pnl_percent=pnl_percent,
            )
        )
        logger.info(f"Profit exit recorded for {symbol} (entry order {entry_order_id})")
        return self._maybe_reset(ledger, symbol, FollowState.PROFIT_EXITED)

    def _maybe_reset(
        self, ledger: OrderHistoryLedger, symbol: str, exit_state: FollowState
    ) -> RefollowOutcome:
        if not self.auto_refollow:
            return RefollowOutcome(symbol=symbol, state=exit_state, recorded=True)

        removed = ledger.remove_processed(symbol)
        logger.info(f"Auto-refollow: cleared {removed} processed order(s) for {symbol}")
        return RefollowOutcome(
            symbol=symbol,
            state=FollowState.RESET,
            recorded=True,
            ledger_reset=True,
            removed_count=removed,
        )

    def follow_state(self, ledger: OrderHistoryLedger, symbol: str) -> FollowState:
        """Derive the lifecycle state of a symbol from the ledger."""
        live = ledger.live_orders().get(symbol)
        profit_exits = ledger.get_profit_exits(symbol)
        manual_closes = ledger.get_manual_closes(symbol)

        if live is not None:
            if any(r.entry_order_id == live.entry_order_id for r in manual_closes):
                return FollowState.MANUAL_CLOSED
            if any(r.entry_order_id == live.entry_order_id for r in profit_exits):
                return FollowState.PROFIT_EXITED
            return FollowState.FOLLOWING

        if (profit_exits or manual_closes) and not ledger.get_processed_orders(symbol):
            return FollowState.RESET
        return FollowState.IDLE
