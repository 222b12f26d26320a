# copytrade/notifications/telegram_notifier.py
"""Telegram notification sender."""

import logging

from telegram import Bot
from telegram.error import TelegramError

from copytrade.capital.models import CapitalAllocation
from copytrade.execution.models import ExecutionResult

from .alert_formatter import AlertFormatter
from .models import Alert, AlertType
from .settings import NotificationSettings

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends alerts via Telegram.

    Notifications are best-effort: a failed send is logged and reported as
    False, never raised into the trading cycle.

    Attributes:
        _settings: Notification settings.
        _formatter: Alert formatter.
        _bot: Telegram bot instance.
    """

    def __init__(
        self,
        settings: NotificationSettings,
        formatter: AlertFormatter | None = None,
    ):
        """Initialize the notifier.

        Args:
            settings: Notification settings.
            formatter: Alert formatter for message formatting.
        """
        self._settings = settings
        self._formatter = formatter or AlertFormatter()
        self._bot: Bot | None = None

    async def start(self) -> None:
        """Initialize the Telegram bot."""
        if not self.is_enabled:
            logger.info("Telegram notifications disabled")
            return

        self._bot = Bot(token=self._settings.telegram_token)
        logger.info("Telegram notifier started")

    async def stop(self) -> None:
        """Shutdown the bot gracefully."""
        self._bot = None
        logger.info("Telegram notifier stopped")

    @property
    def is_enabled(self) -> bool:
        """Check if notifications are enabled and configured."""
        return self._settings.enabled and self._settings.is_configured

    async def send_alert(self, alert: Alert) -> bool:
        """Send a generic alert.

        Args:
            alert: The alert to send.

        Returns:
            True if sent successfully, False otherwise.
        """
        if not self.is_enabled:
            return False

        if self._bot is None:
            logger.warning("Bot not initialized, cannot send alert")
            return False

        if alert.alert_type.value not in self._settings.alert_types:
            logger.debug(f"Alert type {alert.alert_type.value} not enabled")
            return False

        try:
            await self._bot.send_message(
                chat_id=self._settings.chat_id,
                text=alert.message,
            )
            logger.info(f"Sent {alert.alert_type.value} alert")
            return True
        except TelegramError as e:
            logger.error(f"Failed to send alert: {e}")
            return False

    async def send_system(self, message: str) -> bool:
        return await self.send_alert(Alert(alert_type=AlertType.SYSTEM, message=message))

    async def send_execution(
        self,
        result: ExecutionResult,
        is_entry: bool,
        allocation: CapitalAllocation | None = None,
    ) -> bool:
        """Send an execution alert.

        Args:
            result: The execution result.
            is_entry: True for entry, False for exit.
            allocation: Capital allocation behind an entry.

        Returns:
            True if sent successfully.
        """
        message = self._formatter.format_execution(result, is_entry, allocation)
        alert_type = AlertType.ENTRY_EXECUTED if is_entry else AlertType.EXIT_EXECUTED
        alert = Alert(alert_type=alert_type, symbol=result.symbol, message=message)
        return await self.send_alert(alert)

    async def send_manual_close(self, symbol: str, entry_order_id: str, refollow: bool) -> bool:
        message = self._formatter.format_manual_close(symbol, entry_order_id, refollow)
        return await self.send_alert(
            Alert(alert_type=AlertType.MANUAL_CLOSE, symbol=symbol, message=message)
        )

    async def send_profit_exit(self, symbol: str, pnl_percent: float | None, reason: str) -> bool:
        message = self._formatter.format_profit_exit(symbol, pnl_percent, reason)
        return await self.send_alert(
            Alert(alert_type=AlertType.PROFIT_EXIT, symbol=symbol, message=message)
        )

    async def send_skipped(self, symbol: str, reason: str) -> bool:
        message = self._formatter.format_skipped(symbol, reason)
        return await self.send_alert(
            Alert(alert_type=AlertType.SKIPPED, symbol=symbol, message=message)
        )

    async def send_cycle_error(self, agent_id: str, error: str) -> bool:
        """Send a cycle failure alert.

        Args:
            agent_id: Agent being followed.
            error: Error description.

        Returns:
            True if sent successfully.
        """
        message = self._formatter.format_cycle_error(agent_id, error)
        return await self.send_alert(Alert(alert_type=AlertType.CYCLE_ERROR, message=message))
