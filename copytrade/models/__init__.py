"""Shared position models."""

from .positions import BrokerPosition, Side, SignalPosition

__all__ = ["BrokerPosition", "Side", "SignalPosition"]
