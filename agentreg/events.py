"""
AGENTREG notification log

Append-only, hash-chained record of every registry notification
(registration, capability update, state update, status change, execution).
Each entry hashes its predecessor, so edits to stored history are detectable.
The registry's correctness never depends on anyone reading this log.
"""

from __future__ import annotations

import hashlib
import json
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional

from .logging import get_logger
from .models import EventKind, RegistryEvent, utc_now_iso

logger = get_logger("events")


def _canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def compute_event_hash(event: RegistryEvent) -> str:
    return hashlib.sha256(_canonical_json(event.payload_without_hash()).encode("utf-8")).hexdigest()


def _seal(seq: int, kind: EventKind, agent_id: int, data: Dict[str, Any], prev_hash: Optional[str]) -> RegistryEvent:
    draft = RegistryEvent(
        seq=seq,
        kind=kind,
        agent_id=agent_id,
        data=data,
        timestamp=utc_now_iso(),
        prev_hash=prev_hash,
    )
    return RegistryEvent(**{**draft.__dict__, "hash": compute_event_hash(draft)})


def verify_events(events: Iterable[RegistryEvent]) -> bool:
    """Verify an oldest-first sequence: linkage, ordering and per-entry hashes."""
    prev_hash = None
    expected_seq = None
    for event in events:
        if expected_seq is not None and event.seq != expected_seq:
            logger.warning("Notification chain broken: expected seq %s, found %s", expected_seq, event.seq)
            return False
        if event.prev_hash != prev_hash:
            logger.warning("Notification chain broken at seq %s: prev_hash does not match", event.seq)
            return False
        if event.hash != compute_event_hash(event):
            logger.warning("Notification chain broken at seq %s: entry hash mismatch", event.seq)
            return False
        prev_hash = event.hash
        expected_seq = event.seq + 1
    return True


class MemoryEventLog:
    """Hash-chained notification log kept in a list."""

    def __init__(self):
        self._lock = Lock()
        self._events: List[RegistryEvent] = []

    def append(self, kind: EventKind, agent_id: int, data: Dict[str, Any]) -> RegistryEvent:
        with self._lock:
            prev_hash = self._events[-1].hash if self._events else None
            event = _seal(len(self._events) + 1, kind, agent_id, data, prev_hash)
            self._events.append(event)
            return event

    def list_events(self, agent_id: Optional[int] = None, limit: int = 100, offset: int = 0) -> List[RegistryEvent]:
        with self._lock:
            events = list(reversed(self._events))
        if agent_id is not None:
            events = [e for e in events if e.agent_id == agent_id]
        return events[offset:offset + limit]

    def count(self) -> int:
        with self._lock:
            return len(self._events)

    def verify_chain(self, events: Optional[List[RegistryEvent]] = None) -> bool:
        if events is None:
            with self._lock:
                events = list(self._events)
        return verify_events(events)


class SQLiteEventLog:
    """Hash-chained notification log in SQLite. Every entry references the previous hash."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._init_db()

    def _init_db(self) -> None:
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS registry_events (
                seq INTEGER PRIMARY KEY,
                kind TEXT NOT NULL,
                agent_id INTEGER NOT NULL,
                data TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                prev_hash TEXT,
                hash TEXT NOT NULL
            )
            """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_events_agent ON registry_events(agent_id)")
        conn.commit()
        conn.close()

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> RegistryEvent:
        return RegistryEvent(
            seq=int(row["seq"]),
            kind=EventKind(row["kind"]),
            agent_id=int(row["agent_id"]),
            data=json.loads(row["data"]),
            timestamp=row["timestamp"],
            prev_hash=row["prev_hash"],
            hash=row["hash"],
        )

    def append(self, kind: EventKind, agent_id: int, data: Dict[str, Any]) -> RegistryEvent:
        with self._lock:
            conn = sqlite3.connect(self.db_path)
            try:
                # Hold the write lock from reading the tip until the insert lands.
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute("SELECT seq, hash FROM registry_events ORDER BY seq DESC LIMIT 1").fetchone()
                seq, prev_hash = (row[0] + 1, row[1]) if row else (1, None)
                event = _seal(seq, kind, agent_id, data, prev_hash)
                conn.execute(
                    """
                    INSERT INTO registry_events (seq, kind, agent_id, data, timestamp, prev_hash, hash)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.seq,
                        event.kind.value,
                        event.agent_id,
                        _canonical_json(event.data),
                        event.timestamp,
                        event.prev_hash,
                        event.hash,
                    ),
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()
        return event

    def list_events(self, agent_id: Optional[int] = None, limit: int = 100, offset: int = 0) -> List[RegistryEvent]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            if agent_id is not None:
                rows = conn.execute(
                    """
                    SELECT * FROM registry_events
                    WHERE agent_id = ?
                    ORDER BY seq DESC
                    LIMIT ? OFFSET ?
                    """,
                    (agent_id, limit, offset),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM registry_events ORDER BY seq DESC LIMIT ? OFFSET ?",
                    (limit, offset),
                ).fetchall()
        finally:
            conn.close()
        return [self._row_to_event(r) for r in rows]

    def count(self) -> int:
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute("SELECT COUNT(*) FROM registry_events").fetchone()
        finally:
            conn.close()
        return int(row[0]) if row else 0

    def verify_chain(self, events: Optional[List[RegistryEvent]] = None) -> bool:
        """Verify no entries have been tampered with."""
        if events is None:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            try:
                rows = conn.execute("SELECT * FROM registry_events ORDER BY seq ASC").fetchall()
            finally:
                conn.close()
            events = [self._row_to_event(r) for r in rows]
        return verify_events(events)
