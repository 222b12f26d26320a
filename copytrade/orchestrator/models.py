"""Data models for the copy-trading orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from copytrade.execution.models import ExecutionResult


class OrchestratorState(Enum):
    """State of the copy-trading orchestrator."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class CycleStatus(str, Enum):
    """Overall outcome of one poll."""

    OK = "ok"
    ABORTED = "aborted"
    ERROR = "error"


@dataclass
class SymbolOutcome:
    """What happened to one symbol during a cycle.

    Attributes:
        symbol: Symbol concerned.
        action: opened, skipped, failed, closed, manual_close, profit_exit or dry_run.
        detail: Reason or error text.
        execution: Exchange result, when an order was attempted.
    """

    symbol: str
    action: str
    detail: str | None = None
    execution: ExecutionResult | None = None


@dataclass
class CycleResult:
    """Result of one poll of the signal source."""

    status: CycleStatus
    outcomes: list[SymbolOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    ledger_saved: bool = True
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    def by_action(self, action: str) -> list[SymbolOutcome]:
        return [o for o in self.outcomes if o.action == action]
