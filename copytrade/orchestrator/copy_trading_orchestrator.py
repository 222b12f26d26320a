"""Main copy-trading orchestrator that coordinates one poll cycle."""

import asyncio
import logging
from datetime import datetime

from copytrade.capital.capital_allocator import CapitalAllocator
from copytrade.capital.models import CapitalAllocation
from copytrade.capital.settings import CapitalSettings
from copytrade.exceptions import (
    CopyTradeError,
    InvalidInputError,
    LedgerPersistenceError,
)
from copytrade.execution.base import ExchangeClient
from copytrade.execution.trade_executor import TradeExecutor
from copytrade.ledger.models import OrderHistoryLedger, ProcessedOrderRecord, utc_now
from copytrade.ledger.order_history_store import OrderHistoryStore
from copytrade.models.positions import BrokerPosition, SignalPosition
from copytrade.notifications.telegram_notifier import TelegramNotifier
from copytrade.orchestrator.models import (
    CycleResult,
    CycleStatus,
    OrchestratorState,
    SymbolOutcome,
)
from copytrade.orchestrator.settings import OrchestratorSettings
from copytrade.reconciliation.models import (
    PositionStatus,
    ReconciliationEvent,
    ReconciliationResult,
)
from copytrade.reconciliation.position_reconciler import PositionReconciler
from copytrade.refollow.models import FollowState
from copytrade.refollow.refollow_controller import AutoRefollowController
from copytrade.risk.models import TradingPlan
from copytrade.risk.risk_manager import RiskManager
from copytrade.signals.signal_client import SignalSourceClient

logger = logging.getLogger(__name__)


class CopyTradingOrchestrator:
    """Coordinates all copy-trading components.

    Each cycle: load ledger -> fetch signals -> reconcile -> profit sweep ->
    handle closes -> allocate -> risk check -> execute -> save.
    Only one cycle runs at a time; the ledger is owned by the running cycle.
    """

    def __init__(
        self,
        settings: OrchestratorSettings,
        signal_client: SignalSourceClient,
        exchange_client: ExchangeClient,
        store: OrderHistoryStore,
        reconciler: PositionReconciler,
        allocator: CapitalAllocator,
        capital_settings: CapitalSettings,
        risk_manager: RiskManager,
        trade_executor: TradeExecutor,
        refollow_controller: AutoRefollowController,
        notifier: TelegramNotifier | None = None,
        save_after_each_event: bool = True,
        dry_run: bool = False,
    ):
        self._settings = settings
        self._signals = signal_client
        self._exchange = exchange_client
        self._store = store
        self._reconciler = reconciler
        self._allocator = allocator
        self._capital_settings = capital_settings
        self._risk_manager = risk_manager
        self._executor = trade_executor
        self._refollow = refollow_controller
        self._notifier = notifier
        self._save_after_each_event = save_after_each_event
        self._dry_run = dry_run

        self._state = OrchestratorState.STOPPED
        self._loop_task: asyncio.Task | None = None
        self._cycle_lock = asyncio.Lock()
        self._unsaved_ledger: OrderHistoryLedger | None = None
        self._last_result: CycleResult | None = None
        self._cycle_count = 0

    @property
    def state(self) -> OrchestratorState:
        """Return the current orchestrator state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Return True if the orchestrator is in RUNNING state."""
        return self._state == OrchestratorState.RUNNING

    @property
    def last_result(self) -> CycleResult | None:
        return self._last_result

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def has_unsaved_ledger(self) -> bool:
        return self._unsaved_ledger is not None

    async def start(self) -> None:
        """Start polling on a fixed interval."""
        if self._state != OrchestratorState.STOPPED:
            raise RuntimeError("Orchestrator already running")

        self._state = OrchestratorState.RUNNING
        logger.info(
            f"Starting copy-trading orchestrator for {self._settings.agent_id} "
            f"(every {self._settings.poll_interval_seconds}s)"
        )
        self._loop_task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop the orchestrator gracefully."""
        if self._state == OrchestratorState.STOPPED:
            return

        self._state = OrchestratorState.STOPPING
        logger.info("Stopping copy-trading orchestrator")

        if self._loop_task:
            # An in-flight cycle runs to completion; only the idle wait is cancelled.
            async with self._cycle_lock:
                self._loop_task.cancel()
                try:
                    await self._loop_task
                except asyncio.CancelledError:
                    pass
            self._loop_task = None

        if self._unsaved_ledger is not None:
            await self._save(self._unsaved_ledger)

        self._state = OrchestratorState.STOPPED
        logger.info("Copy-trading orchestrator stopped")

    async def _run_loop(self) -> None:
        """Main poll loop."""
        while self._state == OrchestratorState.RUNNING:
            await self.run_cycle()
            await asyncio.sleep(self._settings.poll_interval_seconds)

    async def run_cycle(self) -> CycleResult:
        """Run one poll of the signal source.

        Returns:
            CycleResult; transient failures are reported here, never raised.
        """
        async with self._cycle_lock:
            self._cycle_count += 1
            try:
                result = await self._run_cycle()
            except CopyTradeError as e:
                logger.error(f"Cycle {self._cycle_count} failed: {e}")
                result = CycleResult(status=CycleStatus.ERROR, error=str(e))
            except Exception as e:
                logger.exception(f"Unexpected error in cycle {self._cycle_count}: {e}")
                result = CycleResult(status=CycleStatus.ERROR, error=str(e))

            result.finished_at = datetime.now()
            if result.status != CycleStatus.OK:
                await self._notify("send_cycle_error", self._settings.agent_id, result.error or "")
            self._last_result = result
            return result

    async def _run_cycle(self) -> CycleResult:
        result = CycleResult(status=CycleStatus.OK)

        # 1. Ledger
        ledger = await self._load_ledger(result)
        loaded_at = ledger.last_updated

        # 2. Signals
        try:
            signals = await self._signals.fetch_positions(self._settings.agent_id)
        except CopyTradeError as e:
            logger.error(f"Signal fetch failed, skipping cycle: {e}")
            result.status = CycleStatus.ABORTED
            result.error = str(e)
            return result

        # 3. Balance
        try:
            account = await self._exchange.get_account_info()
        except CopyTradeError as e:
            logger.error(f"Account query failed, skipping cycle: {e}")
            result.status = CycleStatus.ABORTED
            result.error = str(e)
            return result

        # 4. Reconcile
        reconciliation = await self._reconciler.reconcile(signals, ledger)
        if self._reconciler.detect_manual_close and not reconciliation.manual_close_checked:
            result.warnings.append("Broker positions unavailable, manual-close detection skipped")

        # 5. Profit sweep
        if self._refollow.profit_target_pct is not None:
            await self._sweep_profit_targets(ledger, reconciliation, result)

        # 6. Closes
        for event in reconciliation.by_status(PositionStatus.AGENT_CLOSED):
            await self._handle_agent_closed(ledger, event, reconciliation, result)
        for event in reconciliation.by_status(PositionStatus.MANUAL_CLOSED):
            await self._handle_manual_close(ledger, event, result)

        # 7-8. Entries
        new_positions = reconciliation.new_positions
        if new_positions:
            await self._open_new_positions(
                ledger, new_positions, account.available_balance, result
            )
        else:
            logger.info("No new positions to copy")

        # 9. Persist
        if ledger.last_updated != loaded_at or self._unsaved_ledger is not None:
            result.ledger_saved = await self._save(ledger)
            if not result.ledger_saved:
                result.warnings.append("Order history not saved; will retry next cycle")

        logger.info(
            f"Cycle {self._cycle_count} done: "
            f"{len(result.by_action('opened'))} opened, "
            f"{len(result.by_action('skipped'))} skipped, "
            f"{len(result.by_action('closed'))} closed"
        )
        return result

    async def _load_ledger(self, result: CycleResult) -> OrderHistoryLedger:
        if self._unsaved_ledger is not None:
            logger.info("Retrying save of order history from previous cycle")
            ledger = self._unsaved_ledger
            if not await self._save(ledger):
                result.warnings.append("Order history still not saved")
            return ledger
        return await self._store.load()

    async def _save(self, ledger: OrderHistoryLedger) -> bool:
        """Persist the ledger, keeping it in memory when the write fails."""
        if self._dry_run:
            return True
        try:
            await self._store.save(ledger)
        except LedgerPersistenceError as e:
            logger.error(f"{e}; keeping ledger in memory")
            self._unsaved_ledger = ledger
            return False
        self._unsaved_ledger = None
        return True

    async def _event_saved(self, ledger: OrderHistoryLedger) -> None:
        if self._save_after_each_event:
            await self._save(ledger)

    async def _sweep_profit_targets(
        self,
        ledger: OrderHistoryLedger,
        reconciliation: ReconciliationResult,
        result: CycleResult,
    ) -> None:
        """Close followed positions whose return on margin reached the target."""
        for event in reconciliation.by_status(PositionStatus.UNCHANGED):
            broker = event.broker
            if broker is None or event.signal is None or not event.signal.is_live:
                continue
            if self._refollow.follow_state(ledger, event.symbol) != FollowState.FOLLOWING:
                continue
            if not self._refollow.profit_target_met(broker.pnl_percent):
                continue

            logger.info(
                f"{event.symbol} at {broker.pnl_percent:.2f}% reached profit target "
                f"{self._refollow.profit_target_pct}%"
            )
            execution = await self._close(broker)
            if execution is not None and not execution.success:
                result.outcomes.append(
                    SymbolOutcome(
                        event.symbol, "failed", execution.error_message, execution
                    )
                )
                continue

            reason = (
                f"Profit target {self._refollow.profit_target_pct}% reached "
                f"at {broker.pnl_percent:.2f}%"
            )
            self._refollow.on_profit_target(
                ledger, event.symbol, event.signal.entry_order_id, broker.pnl_percent, reason
            )
            result.outcomes.append(SymbolOutcome(event.symbol, "profit_exit", reason, execution))
            await self._notify("send_profit_exit", event.symbol, broker.pnl_percent, reason)
            await self._event_saved(ledger)

    async def _handle_agent_closed(
        self,
        ledger: OrderHistoryLedger,
        event: ReconciliationEvent,
        reconciliation: ReconciliationResult,
        result: CycleResult,
    ) -> None:
        """Close our copy of a position the agent has exited."""
        broker = event.broker
        if broker is None and not reconciliation.manual_close_checked:
            try:
                broker = next(
                    (p for p in await self._exchange.get_positions(event.symbol) if p.is_open),
                    None,
                )
            except CopyTradeError as e:
                logger.warning(f"Could not query {event.symbol} position, retrying next cycle: {e}")
                result.outcomes.append(SymbolOutcome(event.symbol, "failed", str(e)))
                return

        execution = None
        pnl_percent = None
        if broker is not None and broker.is_open:
            execution = await self._close(broker)
            if execution is not None:
                if not execution.success:
                    result.outcomes.append(
                        SymbolOutcome(event.symbol, "failed", execution.error_message, execution)
                    )
                    await self._notify("send_execution", execution, False)
                    return
                pnl_percent = execution.pnl_percent
                await self._notify("send_execution", execution, False)

        outcome = self._refollow.on_agent_closed(ledger, event, pnl_percent)
        if outcome.state in (FollowState.PROFIT_EXITED, FollowState.RESET):
            result.outcomes.append(
                SymbolOutcome(event.symbol, "profit_exit", f"{pnl_percent:.2f}%", execution)
            )
        else:
            logger.info(f"Agent closed {event.symbol}, copy closed")
            result.outcomes.append(SymbolOutcome(event.symbol, "closed", None, execution))
        await self._event_saved(ledger)

    async def _handle_manual_close(
        self, ledger: OrderHistoryLedger, event: ReconciliationEvent, result: CycleResult
    ) -> None:
        outcome = self._refollow.on_manual_close(ledger, event)
        result.outcomes.append(SymbolOutcome(event.symbol, "manual_close", outcome.state.value))
        await self._notify(
            "send_manual_close",
            event.symbol,
            event.entry_order_id or "",
            self._refollow.auto_refollow,
        )
        await self._event_saved(ledger)

    async def _open_new_positions(
        self,
        ledger: OrderHistoryLedger,
        positions: list[SignalPosition],
        available_balance: float,
        result: CycleResult,
    ) -> None:
        """Allocate capital for the NEW set and place an order per allocation."""
        policy = self._capital_settings.to_policy(available_balance)
        allocation = self._allocator.allocate(positions, policy)
        for warning in allocation.warnings:
            logger.warning(warning)
        result.warnings.extend(allocation.warnings)

        allocated = {a.symbol for a in allocation.allocations}
        for position in positions:
            if position.symbol not in allocated:
                result.outcomes.append(
                    SymbolOutcome(position.symbol, "skipped", "No capital allocated")
                )

        signals = {p.symbol: p for p in positions}
        for item in allocation.allocations:
            await self._enter(ledger, signals[item.symbol], item, result)

    async def _enter(
        self,
        ledger: OrderHistoryLedger,
        signal: SignalPosition,
        allocation: CapitalAllocation,
        result: CycleResult,
    ) -> None:
        plan = TradingPlan(
            symbol=signal.symbol,
            side=allocation.side,
            quantity=allocation.adjusted_quantity,
            leverage=allocation.leverage,
            plan_id=signal.entry_order_id,
        )
        current_price = await self._current_price(signal)
        try:
            assessment = self._risk_manager.assess_risk_with_directional_price_tolerance(
                plan, signal.entry_price, current_price
            )
        except InvalidInputError as e:
            await self._skip(signal.symbol, str(e), result)
            return

        if not assessment.is_valid:
            check = assessment.price_tolerance
            reason = check.reason if check is not None else "; ".join(assessment.warnings)
            await self._skip(signal.symbol, reason, result)
            return
        for warning in assessment.warnings:
            logger.warning(f"{signal.symbol}: {warning}")

        if self._dry_run:
            logger.info(
                f"[DRY RUN] Would {allocation.side.value} {allocation.adjusted_quantity} "
                f"{signal.symbol} at {allocation.leverage}x "
                f"(margin {self._allocator.format_amount(allocation.allocated_margin)})"
            )
            result.outcomes.append(SymbolOutcome(signal.symbol, "dry_run"))
            return

        execution = await self._executor.open_position(allocation)
        await self._notify("send_execution", execution, True, allocation)
        if not execution.success:
            result.outcomes.append(
                SymbolOutcome(signal.symbol, "failed", execution.error_message, execution)
            )
            return

        ledger.record_processed(
            ProcessedOrderRecord(
                symbol=signal.symbol,
                entry_order_id=signal.entry_order_id,
                timestamp=utc_now(),
                executed_quantity=execution.quantity,
                side=allocation.side,
            )
        )
        logger.info(
            f"Copied {signal.symbol} {allocation.side.value} {execution.quantity} "
            f"(entry order {signal.entry_order_id})"
        )
        result.outcomes.append(SymbolOutcome(signal.symbol, "opened", None, execution))
        await self._event_saved(ledger)

    async def _skip(self, symbol: str, reason: str, result: CycleResult) -> None:
        logger.warning(f"Skipping {symbol}: {reason}")
        result.outcomes.append(SymbolOutcome(symbol, "skipped", reason))
        await self._notify("send_skipped", symbol, reason)

    async def _current_price(self, signal: SignalPosition) -> float:
        """Live exchange price, falling back to the price the agent reported."""
        try:
            return await self._exchange.get_price(signal.symbol)
        except CopyTradeError as e:
            logger.warning(
                f"Price lookup for {signal.symbol} failed, using signal price: {e}"
            )
            return signal.current_price

    async def _close(self, position: BrokerPosition):
        if self._dry_run:
            logger.info(f"[DRY RUN] Would close {position.symbol} {position.quantity}")
            return None
        return await self._executor.close_position(position)

    async def _notify(self, method: str, *args) -> None:
        if self._notifier is None:
            return
        await getattr(self._notifier, method)(*args)
