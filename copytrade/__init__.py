"""Copy-trading engine that mirrors an AI agent's futures positions."""

__version__ = "1.0.0"
