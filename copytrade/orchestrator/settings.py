"""Configuration for the copy-trading orchestrator."""

from pydantic import BaseModel, Field


class OrchestratorSettings(BaseModel):
    """Settings for CopyTradingOrchestrator.

    Attributes:
        agent_id: Agent whose positions are copied.
        poll_interval_seconds: Delay between cycles.
        detect_manual_close: Query the broker each cycle to spot manual closes.
        auto_refollow: Clear a symbol's processed orders after an exit.
        profit_target_pct: Return on margin (%) that triggers a profit exit.
    """

    agent_id: str = ""
    poll_interval_seconds: int = Field(default=30, ge=1)
    detect_manual_close: bool = True
    auto_refollow: bool = False
    profit_target_pct: float | None = Field(default=None, gt=0)
