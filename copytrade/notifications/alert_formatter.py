# copytrade/notifications/alert_formatter.py
"""Formats alerts for Telegram messages."""

from copytrade.capital.models import CapitalAllocation
from copytrade.execution.models import ExecutionResult
from copytrade.models.positions import Side


class AlertFormatter:
    """Formats copy-trading events into readable Telegram messages."""

    def format_execution(
        self, result: ExecutionResult, is_entry: bool, allocation: CapitalAllocation | None = None
    ) -> str:
        """Format an execution result (entry or exit)."""
        if is_entry:
            emoji = "✅"
            title = "ENTRY EXECUTED"
            direction = "📈" if result.side == Side.BUY else "📉"
            action = "LONG" if result.side == Side.BUY else "SHORT"
        else:
            emoji = "🏁"
            title = "EXIT EXECUTED"
            direction = "📉"
            action = "CLOSED"

        if not result.success:
            return f"""❌ {title.split()[0]} FAILED

{direction} {result.symbol} - {action}
📦 Quantity: {result.quantity}
⚠️ Error: {result.error_message}"""

        price = f"${result.filled_price:,.2f}" if result.filled_price else "market"
        message = f"""{emoji} {title}

{direction} {result.symbol} - {action}
📦 Quantity: {result.quantity}
💵 Price: {price}"""

        if allocation is not None:
            message += (
                f"\n💰 Margin: ${allocation.allocated_margin:,.2f}"
                f" ({allocation.leverage}x, notional ${allocation.notional_value:,.2f})"
            )
        if result.pnl_percent is not None:
            message += f"\n📊 P&L: {result.pnl_percent:+.2f}%"
        return message

    def format_manual_close(self, symbol: str, entry_order_id: str, refollow: bool) -> str:
        """Format a manual-close detection alert."""
        next_step = (
            "🔁 Will re-follow on the agent's next entry"
            if refollow
            else "⏸️ Not following until the agent opens a new position"
        )
        return f"""✋ MANUAL CLOSE DETECTED

🪙 {symbol} (entry {entry_order_id})
Position is gone on the exchange but the agent still holds it.
{next_step}"""

    def format_profit_exit(self, symbol: str, pnl_percent: float | None, reason: str) -> str:
        """Format a profit-target exit alert."""
        pnl = f"{pnl_percent:+.2f}%" if pnl_percent is not None else "n/a"
        return f"""🎯 PROFIT EXIT: {symbol}

📈 Return on margin: {pnl}
📝 {reason}"""

    def format_skipped(self, symbol: str, reason: str) -> str:
        """Format a skipped-entry alert."""
        return f"""⏭️ SKIPPED: {symbol}

📝 {reason}"""

    def format_cycle_error(self, agent_id: str, error: str) -> str:
        """Format a cycle failure alert."""
        return f"""🚨 CYCLE ERROR ({agent_id})

⚠️ {error}"""
