"""SQLite-backed ledger of accumulated playtime.

Every identity owns a namespace row; each activity it played is one entry
holding the total number of nanoseconds as a varint blob. All writes run in
``BEGIN IMMEDIATE`` transactions so SQLite admits one writer at a time, and
every transaction uses its own connection so worker threads never share one.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .errors import (
    DecodeError,
    LedgerClosedError,
    NoHistoryError,
    StoreOpenError,
    TransactionError,
)
from .models import MergeResult
from .varint import decode_varint, encode_varint

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def connect(
    path: Path, *, timeout: float = 30.0, check_same_thread: bool = True
) -> sqlite3.Connection:
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        timeout=timeout,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    return conn


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS namespaces (
            identity TEXT PRIMARY KEY,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS playtime (
            identity TEXT NOT NULL REFERENCES namespaces(identity),
            activity TEXT NOT NULL,
            played BLOB NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (identity, activity)
        ) WITHOUT ROWID;
        """
    )


def _now_text() -> str:
    return datetime.now().strftime(DATETIME_FMT)


class Ledger:
    """Cumulative playtime per (identity, activity)."""

    def __init__(
        self, path: Path, conn: sqlite3.Connection, *, timeout: float = 30.0
    ) -> None:
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = conn
        self._timeout = timeout

    @classmethod
    def open(
        cls, path: Path, *, timeout: float = 30.0, create: bool = True
    ) -> "Ledger":
        """Attach to (and initialize) the store at ``path``.

        With ``create=False`` a missing file raises :class:`StoreOpenError`
        instead of starting an empty store.
        """
        path = Path(path)
        if not create and not path.is_file():
            raise StoreOpenError(f"No playtime store at {path}")
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = connect(path, timeout=timeout, check_same_thread=False)
            initialize_schema(conn)
        except sqlite3.Error as exc:
            if conn is not None:
                conn.close()
            raise StoreOpenError(f"Cannot open playtime store {path}: {exc}") from exc
        logger.info("Opened playtime store %s", path)
        return cls(path, conn, timeout=timeout)

    def __enter__(self) -> "Ledger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """Checkpoint the write-ahead log and release the store."""
        conn = self._conn
        if conn is None:
            return
        self._conn = None
        try:
            conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
        except sqlite3.Error:
            logger.exception("Failed to checkpoint %s", self.path)
        finally:
            conn.close()
        logger.info("Closed playtime store %s", self.path)

    @contextmanager
    def _transaction(self, *, write: bool) -> Iterator[sqlite3.Connection]:
        if self._conn is None:
            raise LedgerClosedError(f"Ledger {self.path} is closed")
        try:
            conn = connect(self.path, timeout=self._timeout)
        except sqlite3.Error as exc:
            raise TransactionError(str(exc)) from exc
        try:
            try:
                conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as exc:
            raise TransactionError(str(exc)) from exc
        finally:
            conn.close()

    def merge(self, identity: str, activity: str, elapsed_ns: int) -> int:
        """Add ``elapsed_ns`` to the stored total and return the new total."""
        _check_elapsed(elapsed_ns)
        with self._transaction(write=True) as conn:
            return _merge_entry(conn, identity, activity, elapsed_ns, _now_text())

    def merge_many(self, entries: Iterable[tuple[str, str, int]]) -> list[MergeResult]:
        """Merge several entries in one transaction.

        Each entry runs under its own savepoint: a failing entry is rolled back
        and reported in its result while the others still commit.
        """
        results: list[MergeResult] = []
        stamp = _now_text()
        with self._transaction(write=True) as conn:
            for identity, activity, elapsed_ns in entries:
                conn.execute("SAVEPOINT merge_entry")
                try:
                    _check_elapsed(elapsed_ns)
                    total = _merge_entry(conn, identity, activity, elapsed_ns, stamp)
                except (DecodeError, ValueError, OverflowError, sqlite3.Error) as exc:
                    conn.execute("ROLLBACK TO merge_entry")
                    conn.execute("RELEASE merge_entry")
                    results.append(MergeResult(identity, activity, elapsed_ns, error=exc))
                    continue
                conn.execute("RELEASE merge_entry")
                results.append(MergeResult(identity, activity, elapsed_ns, total_ns=total))
        return results

    def query(self, identity: str) -> dict[str, int]:
        """Return nanoseconds played per activity.

        Raises :class:`NoHistoryError` if nothing was ever recorded for
        ``identity``.
        """
        with self._transaction(write=False) as conn:
            exists = conn.execute(
                "SELECT 1 FROM namespaces WHERE identity = ?", (identity,)
            ).fetchone()
            if exists is None:
                raise NoHistoryError(identity)
            rows = conn.execute(
                "SELECT activity, played FROM playtime WHERE identity = ? ORDER BY activity",
                (identity,),
            ).fetchall()
        return {
            row["activity"]: _decode(identity, row["activity"], row["played"])
            for row in rows
        }

    def identities(self) -> list[str]:
        with self._transaction(write=False) as conn:
            rows = conn.execute("SELECT identity FROM namespaces ORDER BY identity").fetchall()
        return [row["identity"] for row in rows]

    def export(self) -> dict[str, dict[str, int]]:
        """Return every namespace and its totals."""
        dump: dict[str, dict[str, int]] = {}
        with self._transaction(write=False) as conn:
            for row in conn.execute("SELECT identity FROM namespaces ORDER BY identity"):
                dump[row["identity"]] = {}
            for row in conn.execute(
                "SELECT identity, activity, played FROM playtime ORDER BY identity, activity"
            ):
                dump[row["identity"]][row["activity"]] = _decode(
                    row["identity"], row["activity"], row["played"]
                )
        return dump


def _check_elapsed(elapsed_ns: int) -> None:
    if elapsed_ns < 0:
        raise ValueError(f"elapsed time must not be negative, got {elapsed_ns}ns")


def _decode(identity: str, activity: str, value: object) -> int:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise DecodeError(
            f"Stored playtime for {identity!r} on {activity!r} is not a blob"
        )
    try:
        return decode_varint(bytes(value))
    except DecodeError as exc:
        raise DecodeError(
            f"Stored playtime for {identity!r} on {activity!r} is corrupt: {exc}"
        ) from exc


def _merge_entry(
    conn: sqlite3.Connection,
    identity: str,
    activity: str,
    elapsed_ns: int,
    stamp: str,
) -> int:
    conn.execute(
        "INSERT OR IGNORE INTO namespaces (identity, created_at) VALUES (?, ?)",
        (identity, stamp),
    )
    row = conn.execute(
        "SELECT played FROM playtime WHERE identity = ? AND activity = ?",
        (identity, activity),
    ).fetchone()
    current = _decode(identity, activity, row["played"]) if row is not None else 0
    total = current + elapsed_ns
    conn.execute(
        """
        INSERT INTO playtime (identity, activity, played, updated_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (identity, activity)
        DO UPDATE SET played = excluded.played, updated_at = excluded.updated_at
        """,
        (identity, activity, encode_varint(total), stamp),
    )
    return total
