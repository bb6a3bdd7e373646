"""
SQLite-backed relay store.

Durable storage for follow-ups and the inbound message log.

Design:
- Two tables: messages, followups
- Timestamps stored as UTC epoch seconds (REAL)
- One connection guarded by a lock; every operation is its own transaction,
  so inserts and state transitions are atomic with respect to concurrent
  webhook requests
- WAL mode for file databases
- Every sqlite3 failure surfaces as StorageError
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from relay.errors import StorageError
from relay.store.base import FollowUpStore, MessageLog
from relay.store.types import (
    Clock,
    FollowUp,
    FollowUpState,
    InboundMessage,
    Resolution,
    utc_now,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_number TEXT NOT NULL,
    body TEXT NOT NULL DEFAULT '',
    received_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_from_received
ON messages(from_number, received_at);

CREATE TABLE IF NOT EXISTS followups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_number TEXT NOT NULL,
    missed_at REAL NOT NULL,
    state TEXT NOT NULL DEFAULT 'pending',
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    resolved_at REAL,
    resolution TEXT
);

CREATE INDEX IF NOT EXISTS idx_followups_state_missed
ON followups(state, missed_at);
"""

_FOLLOWUP_COLUMNS = "id, from_number, missed_at, state, attempts, last_error, resolved_at, resolution"


def _to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_epoch(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _row_to_followup(row: sqlite3.Row) -> FollowUp:
    return FollowUp(
        id=row["id"],
        from_number=row["from_number"],
        missed_at=_from_epoch(row["missed_at"]),
        state=FollowUpState(row["state"]),
        attempts=row["attempts"],
        last_error=row["last_error"],
        resolved_at=_from_epoch(row["resolved_at"]),
        resolution=Resolution(row["resolution"]) if row["resolution"] else None,
    )


class SQLiteRelayStore(FollowUpStore, MessageLog):
    """
    SQLite implementation of FollowUpStore and MessageLog.

    Follow-ups are never deleted; terminal rows remain as an audit trail.
    """

    def __init__(self, db_path: Optional[str] = None, clock: Optional[Clock] = None):
        """
        Args:
            db_path: Path to the SQLite file. None uses ':memory:' (tests).
            clock: Source of "now"; defaults to the UTC wall clock.
        """
        self.db_path = db_path or ":memory:"
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._conn = self._connect()

    def _connect(self) -> sqlite3.Connection:
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row

            if self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=FULL")

            conn.executescript(_SCHEMA)
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to initialize relay store at {self.db_path}: {e}")
            raise StorageError(f"Cannot open relay store: {e}") from e

        logger.debug(f"Relay store initialized: {self.db_path}")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                logger.error(f"SQLite error in relay store: {e}")
                raise StorageError(str(e)) from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # Follow-ups

    def create(self, from_number: str) -> FollowUp:
        missed_at = self._clock()
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO followups (from_number, missed_at) VALUES (?, ?)",
                (from_number, _to_epoch(missed_at)),
            )
            row = conn.execute(
                f"SELECT {_FOLLOWUP_COLUMNS} FROM followups WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        return _row_to_followup(row)

    def list_pending(self, older_than: timedelta) -> List[FollowUp]:
        cutoff = self._clock() - older_than
        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT {_FOLLOWUP_COLUMNS} FROM followups
                WHERE state = ? AND missed_at <= ?
                """,
                (FollowUpState.PENDING.value, _to_epoch(cutoff)),
            ).fetchall()
        return [_row_to_followup(row) for row in rows]

    def mark_resolved(self, followup_id: int, resolution: Optional[Resolution] = None) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE followups SET state = ?, resolved_at = ?, resolution = ?
                WHERE id = ? AND state = ?
                """,
                (
                    FollowUpState.RESOLVED.value,
                    _to_epoch(self._clock()),
                    resolution.value if resolution else None,
                    followup_id,
                    FollowUpState.PENDING.value,
                ),
            )
            return cursor.rowcount == 1

    def record_failure(self, followup_id: int, error: str) -> int:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE followups SET attempts = attempts + 1, last_error = ? WHERE id = ?",
                (error, followup_id),
            )
            row = conn.execute(
                "SELECT attempts FROM followups WHERE id = ?", (followup_id,)
            ).fetchone()
        return row["attempts"] if row else 0

    def mark_failed(self, followup_id: int, error: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE followups SET state = ?, last_error = ?, resolved_at = ?
                WHERE id = ? AND state = ?
                """,
                (
                    FollowUpState.FAILED.value,
                    error,
                    _to_epoch(self._clock()),
                    followup_id,
                    FollowUpState.PENDING.value,
                ),
            )
            return cursor.rowcount == 1

    def get(self, followup_id: int) -> Optional[FollowUp]:
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_FOLLOWUP_COLUMNS} FROM followups WHERE id = ?",
                (followup_id,),
            ).fetchone()
        return _row_to_followup(row) if row else None

    def count_by_state(self) -> Dict[str, int]:
        counts = {state.value: 0 for state in FollowUpState}
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT state, COUNT(*) AS n FROM followups GROUP BY state"
            ).fetchall()
        for row in rows:
            counts[row["state"]] = row["n"]
        return counts

    # Message log

    def append(self, from_number: str, body: str) -> InboundMessage:
        received_at = _to_epoch(self._clock())
        with self._transaction() as conn:
            last = conn.execute("SELECT MAX(received_at) AS last FROM messages").fetchone()["last"]
            if last is not None and received_at < last:
                received_at = last
            cursor = conn.execute(
                "INSERT INTO messages (from_number, body, received_at) VALUES (?, ?, ?)",
                (from_number, body or "", received_at),
            )
            message_id = cursor.lastrowid
        return InboundMessage(
            id=message_id,
            from_number=from_number,
            body=body or "",
            received_at=_from_epoch(received_at),
        )

    def exists_since(
        self,
        from_number: str,
        since: datetime,
        exclude_body: Optional[str] = None,
    ) -> bool:
        query = "SELECT 1 FROM messages WHERE from_number = ? AND received_at > ?"
        params: list = [from_number, _to_epoch(since)]
        if exclude_body is not None:
            query += " AND body != ?"
            params.append(exclude_body)
        query += " LIMIT 1"

        with self._transaction() as conn:
            row = conn.execute(query, params).fetchone()
        return row is not None
