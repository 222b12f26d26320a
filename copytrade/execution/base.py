# copytrade/execution/base.py
from abc import ABC, abstractmethod

from copytrade.execution.models import AccountInfo, MarginType, OrderRequest
from copytrade.models.positions import BrokerPosition


class ExchangeClient(ABC):
    """Abstract futures exchange client.

    Every exchange exposes the same surface so the engine never branches on
    which exchange is active. Symbols passed in and returned use the signal
    source form (e.g. "BTC"); implementations convert internally.
    """

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def get_account_info(self) -> AccountInfo:
        """Return wallet balances."""
        pass

    @abstractmethod
    async def get_positions(self, symbol: str) -> list[BrokerPosition]:
        """Return open positions for one symbol."""
        pass

    @abstractmethod
    async def get_all_positions(self) -> list[BrokerPosition]:
        """Return all open positions."""
        pass

    @abstractmethod
    async def get_price(self, symbol: str) -> float:
        """Return the latest traded price for a symbol."""
        pass

    @abstractmethod
    async def place_order(self, order: OrderRequest) -> dict:
        """Submit an order.

        Returns:
            Dictionary with at least ``id``; ``average`` and ``filled`` when known.
        """
        pass

    @abstractmethod
    async def cancel_order(self, symbol: str, order_id: str) -> None:
        pass

    @abstractmethod
    async def cancel_all_orders(self, symbol: str) -> None:
        pass

    @abstractmethod
    async def get_open_orders(self, symbol: str | None = None) -> list[dict]:
        pass

    @abstractmethod
    async def set_leverage(self, symbol: str, leverage: int) -> None:
        pass

    @abstractmethod
    async def set_margin_type(self, symbol: str, margin_type: MarginType) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        pass

    @abstractmethod
    def convert_symbol(self, symbol: str) -> str:
        """Convert a signal symbol to the exchange's market symbol."""
        pass

    @abstractmethod
    def format_quantity(self, symbol: str, quantity: float) -> str:
        pass

    @abstractmethod
    def format_price(self, symbol: str, price: float) -> str:
        pass
