"""Configuration models and helpers for the playtime engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the session tracker and its ledger."""

    snapshot_interval: Optional[timedelta] = timedelta(minutes=5)
    drain_timeout: timedelta = timedelta(seconds=10)
    busy_timeout: timedelta = timedelta(seconds=30)
    max_concurrent_merges: int = 4

    def __post_init__(self) -> None:
        if self.max_concurrent_merges < 1:
            raise ValueError("max_concurrent_merges must be at least 1")

    @classmethod
    def from_options(
        cls,
        snapshot_minutes: float | None = 5.0,
        drain_seconds: float = 10.0,
        max_merges: int = 4,
    ) -> "TrackerSettings":
        snapshot = (
            timedelta(minutes=snapshot_minutes)
            if snapshot_minutes is not None and snapshot_minutes > 0
            else None
        )
        return cls(
            snapshot_interval=snapshot,
            drain_timeout=timedelta(seconds=drain_seconds),
            max_concurrent_merges=max_merges,
        )
