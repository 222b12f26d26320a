# copytrade/execution/__init__.py
"""Execution module for exchange operations."""

from .base import ExchangeClient
from .ccxt_client import CcxtFuturesClient
from .models import AccountInfo, ExecutionResult, MarginType, OrderRequest
from .settings import ExecutionSettings
from .trade_executor import TradeExecutor

__all__ = [
    "AccountInfo",
    "CcxtFuturesClient",
    "ExchangeClient",
    "ExecutionResult",
    "ExecutionSettings",
    "MarginType",
    "OrderRequest",
    "TradeExecutor",
]
