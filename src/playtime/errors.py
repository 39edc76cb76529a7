"""Exceptions raised by the ledger and the session tracker."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for failures of the durable store."""


class StoreOpenError(LedgerError):
    """The store file could not be opened or initialized."""


class TransactionError(LedgerError):
    """A transaction failed and was rolled back."""


class DecodeError(LedgerError):
    """A stored playtime value is not a valid varint."""


class LedgerClosedError(LedgerError):
    """The ledger was used after ``close()``."""


class NoHistoryError(LookupError):
    """The identity has never had any playtime recorded."""

    def __init__(self, identity: str) -> None:
        super().__init__(f"{identity!r} never played")
        self.identity = identity


class TrackerClosedError(RuntimeError):
    """The tracker no longer accepts sessions."""
