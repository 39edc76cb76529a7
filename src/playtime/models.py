"""Domain models for tracked sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class Session:
    """An identity currently engaged in one activity.

    ``started_ns`` is a monotonic clock reading marking where the stretch that
    has not yet reached the ledger begins. Snapshots move it forward.
    """

    identity: str
    activity: str
    started_at: datetime
    started_ns: int

    def elapsed_ns(self, now_ns: int) -> int:
        return max(0, now_ns - self.started_ns)

    def close(self, now_ns: int) -> "ClosedSession":
        return ClosedSession(
            identity=self.identity,
            activity=self.activity,
            elapsed_ns=self.elapsed_ns(now_ns),
        )


@dataclass(slots=True, frozen=True)
class ClosedSession:
    """Elapsed time handed over to the ledger."""

    identity: str
    activity: str
    elapsed_ns: int


@dataclass(slots=True, frozen=True)
class MergeResult:
    """Outcome of one entry in a batched merge."""

    identity: str
    activity: str
    elapsed_ns: int
    total_ns: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
