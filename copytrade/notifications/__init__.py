"""Notifications module for copy-trading alerts via Telegram."""

from .alert_formatter import AlertFormatter
from .models import Alert, AlertType
from .settings import NotificationSettings
from .telegram_notifier import TelegramNotifier

__all__ = [
    "Alert",
    "AlertFormatter",
    "AlertType",
    "NotificationSettings",
    "TelegramNotifier",
]
