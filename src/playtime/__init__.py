"""Durable playtime accounting for tracked identities."""

from .engine import PlaytimeEngine
from .errors import (
    DecodeError,
    LedgerClosedError,
    LedgerError,
    NoHistoryError,
    StoreOpenError,
    TrackerClosedError,
    TransactionError,
)
from .ledger import Ledger
from .tracker import SessionTracker

__all__ = [
    "DecodeError",
    "Ledger",
    "LedgerClosedError",
    "LedgerError",
    "NoHistoryError",
    "PlaytimeEngine",
    "SessionTracker",
    "StoreOpenError",
    "TrackerClosedError",
    "TransactionError",
]
