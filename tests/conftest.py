from __future__ import annotations

import sqlite3
from datetime import timedelta
from pathlib import Path

import pytest

from playtime.config import TrackerSettings
from playtime.ledger import Ledger
from playtime.tracker import SessionTracker

SECOND = 1_000_000_000


class FakeClock:
    """Monotonic nanosecond clock advanced by hand."""

    def __init__(self, start: int = 1_000 * SECOND) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * SECOND)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "playtime.sqlite3"


@pytest.fixture
def settings() -> TrackerSettings:
    return TrackerSettings(snapshot_interval=None, drain_timeout=timedelta(seconds=5))


@pytest.fixture
def ledger(store_path: Path):
    ledger = Ledger.open(store_path)
    yield ledger
    ledger.close()


@pytest.fixture
def tracker(ledger: Ledger, settings: TrackerSettings, clock: FakeClock):
    tracker = SessionTracker(ledger, settings, clock=clock)
    tracker.start()
    yield tracker
    tracker.close()


def write_raw(path: Path, identity: str, activity: str, played: object) -> None:
    """Store ``played`` as-is, bypassing the varint encoder."""
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            "INSERT OR IGNORE INTO namespaces (identity, created_at) VALUES (?, ?)",
            (identity, "2024-01-01 00:00:00.000000"),
        )
        conn.execute(
            "INSERT OR REPLACE INTO playtime (identity, activity, played, updated_at)"
            " VALUES (?, ?, ?, ?)",
            (identity, activity, played, "2024-01-01 00:00:00.000000"),
        )
        conn.commit()
    finally:
        conn.close()


def read_raw(path: Path, identity: str, activity: str) -> bytes:
    conn = sqlite3.connect(path)
    try:
        row = conn.execute(
            "SELECT played FROM playtime WHERE identity = ? AND activity = ?",
            (identity, activity),
        ).fetchone()
    finally:
        conn.close()
    return row[0]
