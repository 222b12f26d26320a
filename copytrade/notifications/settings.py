# copytrade/notifications/settings.py
"""Settings for notifications module."""

from pydantic import BaseModel, computed_field


class NotificationSettings(BaseModel):
    """Configuration for Telegram notifications.

    Attributes:
        enabled: Whether notifications are enabled.
        telegram_token: Bot token from BotFather.
        chat_id: Telegram chat ID to send messages to.
        alert_types: Which alert types to send.
    """

    enabled: bool = False
    telegram_token: str = ""
    chat_id: str = ""

    alert_types: list[str] = [
        "system",
        "entry_executed",
        "exit_executed",
        "manual_close",
        "profit_exit",
        "cycle_error",
    ]

    @computed_field
    @property
    def is_configured(self) -> bool:
        """Check if Telegram credentials are configured."""
        return bool(self.telegram_token and self.chat_id)
