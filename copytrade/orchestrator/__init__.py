"""Copy-trading orchestrator coordinating one poll cycle at a time."""

from .copy_trading_orchestrator import CopyTradingOrchestrator
from .models import CycleResult, CycleStatus, OrchestratorState, SymbolOutcome
from .settings import OrchestratorSettings

__all__ = [
    "CopyTradingOrchestrator",
    "CycleResult",
    "CycleStatus",
    "OrchestratorSettings",
    "OrchestratorState",
    "SymbolOutcome",
]
