"""Data models for notifications."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AlertType(Enum):
    """Type of alert to send."""

    SYSTEM = "system"
    ENTRY_EXECUTED = "entry_executed"
    EXIT_EXECUTED = "exit_executed"
    MANUAL_CLOSE = "manual_close"
    PROFIT_EXIT = "profit_exit"
    SKIPPED = "skipped"
    CYCLE_ERROR = "cycle_error"


@dataclass
class Alert:
    """An alert to be sent via Telegram.

    Attributes:
        alert_type: Type of alert.
        symbol: Symbol (if applicable).
        message: Pre-formatted message.
        timestamp: When the alert was created.
    """

    alert_type: AlertType
    symbol: str | None = None
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
