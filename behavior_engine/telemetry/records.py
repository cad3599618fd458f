"""
Record Sink — buffered, append-only SQLite store of engine records.

Every raw event, aggregate, loop, tag and persisted state vector lands here as
``(timestamp, session_id, kind, payload_json)``. ``save_record`` only appends
to an in-memory buffer; full batches are written on a single background
writer thread so SQLite latency never reaches the caller.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Dict, Iterator, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

_Row = Tuple[float, str, str, str]


class RecordSink(Protocol):
    """Persistence collaborator. Both calls are fire-and-forget."""

    def save_record(self, kind: str, payload: Dict[str, Any]) -> None: ...

    def flush_buffer(self) -> None: ...


@dataclass
class StoredRecord:
    id: Optional[int]
    timestamp: float
    session_id: str
    kind: str
    payload_json: str

    def payload(self) -> Dict[str, Any]:
        return json.loads(self.payload_json)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(payload: Any) -> str:
    return json.dumps(payload, default=_json_default)


class SqliteRecordSink:
    """
    Thread-safe buffered sink.

    Usage:
        sink = SqliteRecordSink(db_path, session_id="bse_...")
        sink.save_record("raw_keydown", {...})
        sink.flush_buffer()           # async write of whatever is buffered
        sink.close()                  # synchronous final flush
    """

    def __init__(self, db_path: Path, session_id: str, buffer_size: int = 100):
        self.db_path = Path(db_path)
        self.session_id = session_id
        self.buffer_size = max(buffer_size, 1)
        self._max_buffered = self.buffer_size * 10
        self._buffer: Deque[_Row] = deque()
        self._lock = threading.Lock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="record-sink")
        self._pending: Optional[Future] = None
        self.dropped = 0
        self._init_db()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_record(self, kind: str, payload: Dict[str, Any]) -> None:
        timestamp = payload.get("timestamp") if isinstance(payload, dict) else None
        if not isinstance(timestamp, (int, float)):
            timestamp = time.time() * 1000.0
        row = (float(timestamp), self.session_id, kind, dumps(payload))
        with self._lock:
            self._buffer.append(row)
            full = len(self._buffer) >= self.buffer_size
        if full:
            self.flush_buffer()

    def flush_buffer(self, wait: bool = False) -> None:
        """Hand the buffered batch to the writer thread. ``wait`` blocks until written."""
        batch = self._take_batch()
        if batch:
            self._pending = self._writer.submit(self._write_batch, batch)
        if wait and self._pending is not None:
            self._pending.result()

    def close(self) -> None:
        self.flush_buffer(wait=True)
        self._writer.shutdown(wait=True)

    def _take_batch(self) -> List[_Row]:
        with self._lock:
            batch = list(self._buffer)
            self._buffer.clear()
        return batch

    def _write_batch(self, batch: List[_Row]) -> None:
        try:
            with self._conn() as conn:
                conn.executemany(
                    "INSERT INTO records (timestamp, session_id, kind, payload_json) "
                    "VALUES (?, ?, ?, ?)",
                    batch,
                )
        except Exception:
            logger.warning("Record sink write of %d rows failed, requeueing",
                           len(batch), exc_info=True)
            self._requeue(batch)

    def _requeue(self, batch: List[_Row]) -> None:
        with self._lock:
            self._buffer.extendleft(reversed(batch))
            overflow = len(self._buffer) - self._max_buffered
            for _ in range(max(overflow, 0)):
                self._buffer.pop()
            if overflow > 0:
                self.dropped += overflow
                logger.warning("Record sink buffer full, dropped %d newest rows", overflow)

    @property
    def buffered(self) -> int:
        with self._lock:
            return len(self._buffer)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def query(
        self,
        kind: Optional[str] = None,
        since: Optional[float] = None,
        until: Optional[float] = None,
        limit: int = 200,
    ) -> List[StoredRecord]:
        clauses = []
        params: list = []

        if kind:
            clauses.append("kind = ?")
            params.append(kind)
        if since is not None:
            clauses.append("timestamp >= ?")
            params.append(since)
        if until is not None:
            clauses.append("timestamp <= ?")
            params.append(until)

        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        params.append(limit)

        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT id, timestamp, session_id, kind, payload_json "
                f"FROM records {where} ORDER BY timestamp DESC, id DESC LIMIT ?",
                params,
            ).fetchall()

        return [StoredRecord(*row) for row in rows]

    def counts_by_kind(self) -> Dict[str, int]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT kind, COUNT(*) FROM records GROUP BY kind ORDER BY kind"
            ).fetchall()
        return {kind: count for kind, count in rows}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp     REAL    NOT NULL,
                    session_id    TEXT    NOT NULL,
                    kind          TEXT    NOT NULL,
                    payload_json  TEXT    NOT NULL DEFAULT '{}'
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_records_ts ON records(timestamp)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_records_kind ON records(kind)")

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()
