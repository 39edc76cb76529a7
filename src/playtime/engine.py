"""Process lifecycle for the playtime ledger and session tracker."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from .config import TrackerSettings
from .ledger import Ledger
from .models import ClosedSession, Session
from .tracker import SessionTracker

logger = logging.getLogger(__name__)


class PlaytimeEngine:
    """Owns the ledger, the tracker and the periodic snapshot thread.

    ``open()`` attaches the store, ``start()`` launches background work and
    ``close()`` drains pending merges, snapshots live sessions and releases
    the store. Signal adapters talk to the engine only through
    :meth:`activity_started`, :meth:`activity_ended` and :meth:`totals_for`.
    """

    def __init__(
        self,
        ledger: Ledger,
        tracker: SessionTracker,
        settings: TrackerSettings,
    ) -> None:
        self.ledger = ledger
        self.tracker = tracker
        self.settings = settings
        self._lock = threading.Lock()
        self._snapshot_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._closed = False

    @classmethod
    def open(
        cls,
        store_path: Path,
        settings: Optional[TrackerSettings] = None,
        **tracker_kwargs: object,
    ) -> "PlaytimeEngine":
        """Open the store at ``store_path``; raises ``StoreOpenError``."""
        resolved = settings or TrackerSettings()
        ledger = Ledger.open(store_path, timeout=resolved.busy_timeout.total_seconds())
        tracker = SessionTracker(ledger, resolved, **tracker_kwargs)
        return cls(ledger, tracker, resolved)

    def __enter__(self) -> "PlaytimeEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def store_path(self) -> Path:
        return self.ledger.path

    def start(self) -> None:
        self.tracker.start()
        interval = self.settings.snapshot_interval
        with self._lock:
            if interval is None or self._snapshot_thread is not None:
                return
            self._snapshot_thread = threading.Thread(
                target=self._run_snapshots,
                args=(interval.total_seconds(),),
                name="playtime-snapshot",
                daemon=True,
            )
            self._snapshot_thread.start()
        logger.info("Snapshotting live sessions every %s", interval)

    def is_running(self) -> bool:
        with self._lock:
            return not self._closed

    def activity_started(self, identity: str, activity: str) -> None:
        self.tracker.start_session(identity, activity)

    def activity_ended(self, identity: str) -> bool:
        return self.tracker.request_end(identity)

    def totals_for(self, identity: str) -> dict[str, int]:
        """Persisted nanoseconds per activity; raises ``NoHistoryError``."""
        return self.tracker.get_total(identity)

    def current_session(self, identity: str) -> Optional[ClosedSession]:
        return self.tracker.current_session(identity)

    def live_sessions(self) -> list[Session]:
        return self.tracker.live_sessions()

    def snapshot(self) -> int:
        return self.tracker.snapshot()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            thread = self._snapshot_thread
            self._snapshot_thread = None
        self._stop_event.set()
        if thread is not None:
            thread.join(timeout=self.settings.drain_timeout.total_seconds())
        try:
            self.tracker.close()
        finally:
            self.ledger.close()

    def _run_snapshots(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            try:
                self.tracker.snapshot()
            except Exception:
                logger.exception("Periodic snapshot failed")
