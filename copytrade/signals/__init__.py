"""Signal source client for agent positions."""

from .settings import SignalSourceSettings
from .signal_client import SignalSourceClient

__all__ = ["SignalSourceClient", "SignalSourceSettings"]
