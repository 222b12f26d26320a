# copytrade/execution/trade_executor.py
"""Trade executor for opening and closing copied positions."""
import logging
from datetime import datetime

from copytrade.capital.models import CapitalAllocation
from copytrade.execution.base import ExchangeClient
from copytrade.execution.models import ExecutionResult, MarginType, OrderRequest
from copytrade.models.positions import BrokerPosition, Side

logger = logging.getLogger(__name__)


class TradeExecutor:
    """Execute copied orders on the exchange.

    Attributes:
        _exchange: Exchange client for order execution.
        _margin_type: Margin mode applied before each entry.
    """

    def __init__(
        self,
        exchange_client: ExchangeClient,
        margin_type: MarginType = MarginType.CROSSED,
    ):
        """Initialize TradeExecutor.

        Args:
            exchange_client: Exchange client for order execution.
            margin_type: Margin mode to set on each symbol before entering.
        """
        self._exchange = exchange_client
        self._margin_type = margin_type

    async def open_position(self, allocation: CapitalAllocation) -> ExecutionResult:
        """Open a copied position.

        Steps:
        1. Close any stale position left on the symbol by an earlier entry
        2. Set margin type and leverage (failures are logged, not fatal)
        3. Submit a market order for the allocated quantity

        Args:
            allocation: Capital allocation for the symbol.

        Returns:
            ExecutionResult; failures are reported, not raised.
        """
        timestamp = datetime.now()

        if allocation.adjusted_quantity <= 0:
            return ExecutionResult(
                success=False,
                order_id=None,
                symbol=allocation.symbol,
                side=allocation.side,
                quantity=0,
                filled_price=None,
                error_message="Allocated quantity rounds to zero",
                timestamp=timestamp,
            )

        try:
            stale = await self._exchange.get_positions(allocation.symbol)
            for position in stale:
                if position.is_open:
                    logger.info(f"Closing stale {allocation.symbol} position before re-entry")
                    await self._submit_close(position)

            await self._configure_symbol(allocation.symbol, allocation.leverage)

            order = await self._exchange.place_order(
                OrderRequest(
                    symbol=allocation.symbol,
                    side=allocation.side,
                    quantity=allocation.adjusted_quantity,
                    leverage=allocation.leverage,
                )
            )
            return ExecutionResult(
                success=True,
                order_id=str(order["id"]),
                symbol=allocation.symbol,
                side=allocation.side,
                quantity=float(order.get("filled") or allocation.adjusted_quantity),
                filled_price=order.get("average"),
                error_message=None,
                timestamp=timestamp,
            )
        except Exception as e:
            logger.error(f"Failed to open {allocation.symbol}: {e}")
            return ExecutionResult(
                success=False,
                order_id=None,
                symbol=allocation.symbol,
                side=allocation.side,
                quantity=0,
                filled_price=None,
                error_message=str(e),
                timestamp=timestamp,
            )

    async def close_position(self, position: BrokerPosition) -> ExecutionResult:
        """Close a broker position with a reduce-only market order.

        Args:
            position: The open broker position.

        Returns:
            ExecutionResult carrying the position's return on margin.
        """
        side = Side.SELL if position.quantity > 0 else Side.BUY
        try:
            order = await self._submit_close(position)
            return ExecutionResult(
                success=True,
                order_id=str(order["id"]),
                symbol=position.symbol,
                side=side,
                quantity=abs(position.quantity),
                filled_price=order.get("average"),
                error_message=None,
                pnl_percent=position.pnl_percent,
            )
        except Exception as e:
            logger.error(f"Failed to close {position.symbol}: {e}")
            return ExecutionResult(
                success=False,
                order_id=None,
                symbol=position.symbol,
                side=side,
                quantity=0,
                filled_price=None,
                error_message=str(e),
            )

    async def _submit_close(self, position: BrokerPosition) -> dict:
        return await self._exchange.place_order(
            OrderRequest(
                symbol=position.symbol,
                side=Side.SELL if position.quantity > 0 else Side.BUY,
                quantity=abs(position.quantity),
                reduce_only=True,
            )
        )

    async def _configure_symbol(self, symbol: str, leverage: int) -> None:
        """Set margin type and leverage, tolerating 'no change needed' errors."""
        try:
            await self._exchange.set_margin_type(symbol, self._margin_type)
        except Exception as e:
            logger.warning(f"set_margin_type {symbol} {self._margin_type.value}: {e}")
        try:
            await self._exchange.set_leverage(symbol, leverage)
        except Exception as e:
            logger.warning(f"set_leverage {symbol} x{leverage}: {e}")
