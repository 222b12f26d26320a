# copytrade/execution/ccxt_client.py
"""Futures exchange client backed by ccxt's async API."""
import logging

import ccxt.async_support as ccxt

from copytrade.exceptions import ExchangeError
from copytrade.execution.base import ExchangeClient
from copytrade.execution.models import AccountInfo, MarginType, OrderRequest
from copytrade.models.positions import BrokerPosition

logger = logging.getLogger(__name__)

QUOTE = "USDT"


class CcxtFuturesClient(ExchangeClient):
    """USDT-margined perpetual futures client for Binance and OKX.

    Request signing, retries and rate limiting are left to ccxt. Symbols are
    accepted in signal form ("BTC" or "BTCUSDT") and converted to ccxt's
    unified linear swap symbol ("BTC/USDT:USDT").

    Attributes:
        SUPPORTED: Exchange selector to ccxt class name.
    """

    SUPPORTED = {
        "binance": "binanceusdm",
        "okx": "okx",
    }

    def __init__(
        self,
        exchange: str,
        api_key: str,
        secret: str,
        password: str | None = None,
        testnet: bool = False,
        client: ccxt.Exchange | None = None,
    ):
        """Initialize the client.

        Args:
            exchange: "binance" or "okx".
            api_key: API key.
            secret: API secret.
            password: API passphrase (OKX only).
            testnet: Use the exchange sandbox.
            client: Pre-built ccxt exchange, mainly for tests.

        Raises:
            ValueError: If the exchange is not supported.
        """
        if exchange not in self.SUPPORTED:
            raise ValueError(
                f"Unsupported exchange '{exchange}'. Choose one of: {', '.join(self.SUPPORTED)}"
            )
        super().__init__(name=exchange)

        if client is None:
            config = {
                "apiKey": api_key,
                "secret": secret,
                "enableRateLimit": True,
                "options": {"defaultType": "swap"},
            }
            if password:
                config["password"] = password
            client = getattr(ccxt, self.SUPPORTED[exchange])(config)
            if testnet:
                client.set_sandbox_mode(True)

        self._client = client
        self._markets_loaded = False

    async def connect(self) -> None:
        """Load market metadata needed for symbol and precision helpers."""
        try:
            await self._client.load_markets()
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: failed to load markets: {e}") from e
        self._markets_loaded = True

    async def close(self) -> None:
        await self._client.close()

    def convert_symbol(self, symbol: str) -> str:
        base = symbol.upper()
        if "/" in base:
            return base
        if base.endswith(QUOTE) and base != QUOTE:
            base = base[: -len(QUOTE)]
        return f"{base}/{QUOTE}:{QUOTE}"

    def to_signal_symbol(self, market_symbol: str) -> str:
        """Convert a ccxt market symbol back to the bare coin name."""
        return market_symbol.split("/")[0]

    def format_quantity(self, symbol: str, quantity: float) -> str:
        return self._client.amount_to_precision(self.convert_symbol(symbol), quantity)

    def format_price(self, symbol: str, price: float) -> str:
        return self._client.price_to_precision(self.convert_symbol(symbol), price)

    def _contract_size(self, market_symbol: str) -> float:
        if not self._markets_loaded:
            return 1.0
        market = self._client.market(market_symbol)
        return float(market.get("contractSize") or 1.0)

    async def get_account_info(self) -> AccountInfo:
        try:
            balance = await self._client.fetch_balance()
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: fetch_balance failed: {e}") from e

        quote = balance.get(QUOTE, {})
        return AccountInfo(
            total_wallet_balance=float(quote.get("total") or 0.0),
            available_balance=float(quote.get("free") or 0.0),
        )

    async def get_positions(self, symbol: str) -> list[BrokerPosition]:
        return await self._fetch_positions([self.convert_symbol(symbol)])

    async def get_all_positions(self) -> list[BrokerPosition]:
        return await self._fetch_positions(None)

    async def _fetch_positions(self, symbols: list[str] | None) -> list[BrokerPosition]:
        try:
            raw_positions = await self._client.fetch_positions(symbols)
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: fetch_positions failed: {e}") from e

        positions = []
        for raw in raw_positions:
            contracts = float(raw.get("contracts") or 0.0)
            if contracts == 0:
                continue
            quantity = contracts * float(raw.get("contractSize") or 1.0)
            if raw.get("side") == "short":
                quantity = -quantity
            positions.append(
                BrokerPosition(
                    symbol=self.to_signal_symbol(raw["symbol"]),
                    quantity=quantity,
                    entry_price=float(raw.get("entryPrice") or 0.0),
                    leverage=int(float(raw.get("leverage") or 1)),
                    margin=float(raw.get("initialMargin") or raw.get("collateral") or 0.0),
                    unrealized_pnl=float(raw.get("unrealizedPnl") or 0.0),
                )
            )
        return positions

    async def get_price(self, symbol: str) -> float:
        try:
            ticker = await self._client.fetch_ticker(self.convert_symbol(symbol))
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: fetch_ticker failed for {symbol}: {e}") from e
        price = ticker.get("last") or ticker.get("close")
        if not price:
            raise ExchangeError(f"{self.name}: no price available for {symbol}")
        return float(price)

    async def place_order(self, order: OrderRequest) -> dict:
        market_symbol = self.convert_symbol(order.symbol)
        amount = order.quantity / self._contract_size(market_symbol)
        params = {"reduceOnly": True} if order.reduce_only else {}
        try:
            result = await self._client.create_order(
                market_symbol,
                order.order_type.lower(),
                order.side.value.lower(),
                amount,
                order.price,
                params,
            )
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: order for {order.symbol} rejected: {e}") from e

        logger.info(
            f"{self.name}: {order.side.value} {order.quantity} {order.symbol} "
            f"({order.order_type}) -> order {result.get('id')}"
        )
        return result

    async def cancel_order(self, symbol: str, order_id: str) -> None:
        try:
            await self._client.cancel_order(order_id, self.convert_symbol(symbol))
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: cancel {order_id} failed: {e}") from e

    async def cancel_all_orders(self, symbol: str) -> None:
        try:
            await self._client.cancel_all_orders(self.convert_symbol(symbol))
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: cancel all for {symbol} failed: {e}") from e

    async def get_open_orders(self, symbol: str | None = None) -> list[dict]:
        market_symbol = self.convert_symbol(symbol) if symbol else None
        try:
            return await self._client.fetch_open_orders(market_symbol)
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: fetch_open_orders failed: {e}") from e

    async def set_leverage(self, symbol: str, leverage: int) -> None:
        try:
            await self._client.set_leverage(leverage, self.convert_symbol(symbol))
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: set_leverage {symbol} x{leverage} failed: {e}") from e

    async def set_margin_type(self, symbol: str, margin_type: MarginType) -> None:
        mode = "cross" if margin_type == MarginType.CROSSED else "isolated"
        try:
            await self._client.set_margin_mode(mode, self.convert_symbol(symbol))
        except ccxt.BaseError as e:
            raise ExchangeError(f"{self.name}: set_margin_mode {symbol} {mode} failed: {e}") from e
