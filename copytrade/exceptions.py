"""Exceptions raised by the copy-trading engine."""


class CopyTradeError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(CopyTradeError, ValueError):
    """Raised for conflicting or invalid configuration, before any I/O runs."""


class InvalidInputError(CopyTradeError, ValueError):
    """Raised when a calculation receives an input outside its domain."""


class LedgerPersistenceError(CopyTradeError):
    """Raised when the order history ledger cannot be written to disk.

    The in-memory ledger is still valid; the caller keeps it and retries the
    write on the next poll.
    """

    def __init__(self, path: str, msg: str):
        super().__init__(msg)
        self.path = path


class SignalSourceError(CopyTradeError):
    """Raised when the signal source cannot be queried or returns garbage."""

    def __init__(self, msg: str, status_code: int | None = None):
        super().__init__(msg)
        self.status_code = status_code


class ExchangeError(CopyTradeError):
    """Raised when an exchange call fails after the client's own retries."""
