"""Live session bookkeeping and hand-off of elapsed time to the ledger."""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from .config import TrackerSettings
from .errors import TrackerClosedError
from .ledger import Ledger
from .models import ClosedSession, Session
from .normalization import normalize_key

logger = logging.getLogger(__name__)


class SessionTracker:
    """Tracks which activity each identity is engaged in.

    Starting a session is synchronous. Ending one is queued: ``request_end``
    detaches the session and a listener thread hands the closed stretch to a
    bounded pool of merge workers, so callers never wait on the store.
    ``snapshot()`` flushes live sessions without ending them.

    The lock around the live-session map is never held during store I/O.

    Totals returned by :meth:`get_total` only contain time that reached the
    ledger. The open stretch of a live session is reported separately by
    :meth:`current_session`; callers wanting a running figure add the two.
    """

    def __init__(
        self,
        ledger: Ledger,
        settings: Optional[TrackerSettings] = None,
        *,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self._ledger = ledger
        self.settings = settings or TrackerSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._live: dict[str, Session] = {}
        self._requests: queue.Queue[Optional[ClosedSession]] = queue.Queue()
        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.max_concurrent_merges,
            thread_name_prefix="playtime-merge",
        )
        # Queued end requests plus merges not yet finished.
        self._outstanding = 0
        self._idle = threading.Condition()
        self._jobs: dict[Future, ClosedSession] = {}
        self._listener: Optional[threading.Thread] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start consuming end requests on a background thread."""
        with self._lock:
            if self._closed:
                raise TrackerClosedError("tracker is closed")
            if self._listener and self._listener.is_alive():
                return
            self._listener = threading.Thread(
                target=self.process_end_requests,
                name="playtime-end-listener",
                daemon=True,
            )
            self._listener.start()
        logger.debug("End request listener started.")

    def start_session(self, identity: str, activity: str) -> None:
        """Open a session, closing a different activity the identity had open."""
        identity = normalize_key(identity, kind="identity")
        activity = normalize_key(activity, kind="activity")
        replaced: Optional[ClosedSession] = None
        with self._lock:
            if self._closed:
                raise TrackerClosedError("tracker is closed")
            current = self._live.get(identity)
            if current is not None and current.activity == activity:
                logger.debug("Ignoring repeated start for %s on %s", identity, activity)
                return
            now = self._clock()
            if current is not None:
                replaced = current.close(now)
            self._live[identity] = Session(
                identity=identity,
                activity=activity,
                started_at=datetime.now(),
                started_ns=now,
            )
        if replaced is not None:
            logger.info("%s switched from %s to %s", identity, replaced.activity, activity)
            self._track()
            self._dispatch(replaced)
        logger.info("Starting to count for %s on %s", identity, activity)

    def request_end(self, identity: str) -> bool:
        """Close the live session of ``identity`` and queue it for saving.

        The session leaves the live map at once, so a start that follows opens
        a fresh one. Never waits on the store. Returns ``False`` when there is
        nothing to close.
        """
        identity = normalize_key(identity, kind="identity")
        with self._lock:
            session = None if self._closed else self._live.pop(identity, None)
            if session is None:
                logger.debug("No live session to end for %s", identity)
                return False
            closed = session.close(self._clock())
            self._track()
        self._requests.put(closed)
        return True

    def process_end_requests(self) -> None:
        """Dispatch queued end requests until the stop sentinel arrives."""
        while True:
            closed = self._requests.get()
            if closed is None:
                return
            self._dispatch(closed)

    def snapshot(self) -> int:
        """Merge the elapsed time of every live session without ending it.

        Start points move forward before the write. A stretch that fails to
        merge is handed back: the session is rewound if it is still live,
        otherwise the stretch is saved on its own. Returns the number of
        sessions saved.
        """
        with self._lock:
            now = self._clock()
            pending: list[tuple[Session, ClosedSession]] = []
            for session in self._live.values():
                pending.append((session, session.close(now)))
                session.started_ns = now
        if not pending:
            logger.debug("Snapshot skipped; nobody is playing.")
            return 0

        try:
            results = self._ledger.merge_many(
                [(c.identity, c.activity, c.elapsed_ns) for _, c in pending]
            )
        except Exception:
            self._restore(pending)
            raise

        failed: list[tuple[Session, ClosedSession]] = []
        for (session, closed), result in zip(pending, results):
            if not result.ok:
                logger.error(
                    "Error while saving playtime for %s on %s: %s",
                    closed.identity,
                    closed.activity,
                    result.error,
                )
                failed.append((session, closed))
        if failed:
            self._restore(failed)
        saved = len(pending) - len(failed)
        logger.info("Snapshot done (%d/%d sessions saved)", saved, len(pending))
        return saved

    def get_total(self, identity: str) -> dict[str, int]:
        """Return persisted nanoseconds per activity, excluding live time."""
        return self._ledger.query(normalize_key(identity, kind="identity"))

    def current_session(self, identity: str) -> Optional[ClosedSession]:
        """Return the stretch of a live session not yet in the ledger."""
        identity = normalize_key(identity, kind="identity")
        with self._lock:
            session = self._live.get(identity)
            if session is None:
                return None
            return session.close(self._clock())

    def live_sessions(self) -> list[Session]:
        with self._lock:
            return [replace(session) for session in self._live.values()]

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until queued end requests and running merges have finished.

        Returns ``False`` if work was still outstanding when ``timeout``
        expired.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout)

    def close(self) -> None:
        """Finish outstanding work and flush live sessions.

        Waits up to ``settings.drain_timeout`` in total for end requests and
        merges already under way, then snapshots whatever is still live. The
        ledger itself stays open.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            listener = self._listener
        timeout = self.settings.drain_timeout.total_seconds()
        deadline = time.monotonic() + timeout
        self._requests.put(None)
        if listener is None:
            self.process_end_requests()
        else:
            listener.join(timeout)
        if not self.drain(max(0.0, deadline - time.monotonic())):
            logger.warning(
                "%d playtime merge(s) still running after %.1fs",
                self._outstanding,
                timeout,
            )
            self._cancel_pending()
        self._executor.shutdown(wait=False)
        self.snapshot()

    def _restore(self, failed: list[tuple[Session, ClosedSession]]) -> None:
        orphaned: list[ClosedSession] = []
        with self._lock:
            for session, closed in failed:
                if self._live.get(closed.identity) is session:
                    session.started_ns -= closed.elapsed_ns
                else:
                    orphaned.append(closed)
        for closed in orphaned:
            self._persist(closed)

    def _cancel_pending(self) -> None:
        with self._idle:
            jobs = list(self._jobs.items())
        for future, closed in jobs:
            if future.cancel():
                logger.warning(
                    "Dropping %.1fs of playtime for %s on %s; merge never started",
                    closed.elapsed_ns / 1e9,
                    closed.identity,
                    closed.activity,
                )

    def _track(self) -> None:
        with self._idle:
            self._outstanding += 1

    def _done(self) -> None:
        with self._idle:
            self._outstanding -= 1
            if self._outstanding == 0:
                self._idle.notify_all()

    def _dispatch(self, closed: ClosedSession) -> None:
        try:
            future = self._executor.submit(self._persist, closed)
        except RuntimeError:
            logger.warning(
                "Merge pool is shut down; dropping playtime for %s on %s",
                closed.identity,
                closed.activity,
            )
            self._done()
            return
        with self._idle:
            self._jobs[future] = closed
        future.add_done_callback(self._finished)

    def _finished(self, future: Future) -> None:
        with self._idle:
            self._jobs.pop(future, None)
        self._done()

    def _persist(self, closed: ClosedSession) -> None:
        try:
            total = self._ledger.merge(closed.identity, closed.activity, closed.elapsed_ns)
        except Exception:
            logger.exception(
                "Error while updating playtime for %s on %s",
                closed.identity,
                closed.activity,
            )
            return
        logger.info(
            "Saved %s on %s (+%.1fs, total %.1fs)",
            closed.identity,
            closed.activity,
            closed.elapsed_ns / 1e9,
            total / 1e9,
        )
