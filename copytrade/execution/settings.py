"""Settings for trade execution."""
from typing import Literal

from pydantic import BaseModel

from copytrade.execution.models import MarginType


class ExecutionSettings(BaseModel):
    """Settings for order execution.

    Attributes:
        exchange: Exchange selector.
        margin_type: Margin mode applied before each entry.
        testnet: Route orders to the exchange sandbox.
        dry_run: Evaluate everything but never place orders.
    """

    exchange: Literal["binance", "okx"] = "binance"
    margin_type: MarginType = MarginType.CROSSED
    testnet: bool = True
    dry_run: bool = False
