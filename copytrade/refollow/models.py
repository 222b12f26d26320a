"""Data models for the auto-refollow lifecycle."""

from dataclasses import dataclass
from enum import Enum


class FollowState(str, Enum):
    """Per-symbol follow lifecycle state."""

    IDLE = "idle"
    FOLLOWING = "following"
    PROFIT_EXITED = "profit_exited"
    MANUAL_CLOSED = "manual_closed"
    RESET = "reset"


@dataclass
class RefollowOutcome:
    """What the controller did for one event.

    Attributes:
        symbol: Symbol the event concerned.
        state: Lifecycle state after handling.
        recorded: Whether an audit record was appended.
        ledger_reset: Whether processed orders were removed for the symbol.
        removed_count: Number of processed records removed.
    """

    symbol: str
    state: FollowState
    recorded: bool = False
    ledger_reset: bool = False
    removed_count: int = 0
