"""Settings for the ledger module."""

from pydantic import BaseModel


class LedgerSettings(BaseModel):
    """Configuration for the order history ledger.

    Attributes:
        path: Ledger JSON file location.
        save_after_each_event: Persist after every mutation instead of once per cycle.
    """

    path: str = "data/order-history.json"
    save_after_each_event: bool = True
