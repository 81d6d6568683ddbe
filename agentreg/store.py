"""
AGENTREG persistence layer.

Two interchangeable stores for agent records and the identifier counter:
an in-memory store for tests and embedding, and a SQLite store that survives
restarts. Both allocate the identifier and insert the record in one step,
and both apply an owner-checked field update in one step, so writers in
different processes never overwrite each other's fields.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from .errors import AgentNotFoundError, NotOwnerError
from .models import Agent, ZERO_FINGERPRINT, utc_now_iso

# owner is fixed at registration.
MUTABLE_FIELDS = ("capability_ref", "state_fingerprint", "active")


def _check_fields(fields: Dict[str, Any]) -> None:
    if not fields:
        raise ValueError("no fields to update")
    unknown = set(fields) - set(MUTABLE_FIELDS)
    if unknown:
        raise ValueError(f"fields not updatable: {', '.join(sorted(unknown))}")


class MemoryAgentStore:
    """Agent records held in a dict. Nothing survives the process."""

    def __init__(self):
        self._lock = Lock()
        self._records: Dict[int, Agent] = {}
        self._next_id = 0

    def create(self, owner: str, capability_ref: str) -> Agent:
        with self._lock:
            self._next_id += 1
            now = utc_now_iso()
            agent = Agent(
                agent_id=self._next_id,
                owner=owner,
                capability_ref=capability_ref,
                state_fingerprint=ZERO_FINGERPRINT,
                active=True,
                created_at=now,
                updated_at=now,
            )
            self._records[agent.agent_id] = agent
            return agent

    def get(self, agent_id: int) -> Optional[Agent]:
        with self._lock:
            return self._records.get(agent_id)

    def update(self, agent_id: int, caller: str, **fields: Any) -> Agent:
        """Apply ``fields`` if ``caller`` owns the record. Returns the stored record."""
        _check_fields(fields)
        with self._lock:
            agent = self._records.get(agent_id)
            if agent is None:
                raise AgentNotFoundError(agent_id)
            if agent.owner != caller:
                raise NotOwnerError(agent_id, caller)
            agent = self._records[agent_id] = replace(agent, **fields, updated_at=utc_now_iso())
            return agent

    def next_id(self) -> int:
        with self._lock:
            return self._next_id

    def list(self, owner: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Agent]:
        with self._lock:
            rows = [a for _, a in sorted(self._records.items())]
        if owner is not None:
            rows = [a for a in rows if a.owner == owner]
        return rows[offset:offset + limit]


class SQLiteAgentStore:
    """Agent records and the identifier counter in SQLite."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS agents (
                    id INTEGER PRIMARY KEY,
                    owner TEXT NOT NULL,
                    capability_ref TEXT NOT NULL,
                    state_fingerprint BLOB NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_agents_owner ON agents(owner)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS registry_counters (
                    name TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
                """
            )
            conn.execute("INSERT OR IGNORE INTO registry_counters (name, value) VALUES ('next_id', 0)")

    @staticmethod
    def _row_to_agent(row: sqlite3.Row) -> Agent:
        return Agent(
            agent_id=int(row["id"]),
            owner=row["owner"],
            capability_ref=row["capability_ref"],
            state_fingerprint=bytes(row["state_fingerprint"]),
            active=bool(row["active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def create(self, owner: str, capability_ref: str) -> Agent:
        """Bump the counter and insert the row in one transaction."""
        now = utc_now_iso()
        with self._conn() as conn:
            conn.execute("UPDATE registry_counters SET value = value + 1 WHERE name = 'next_id'")
            agent_id = int(
                conn.execute("SELECT value FROM registry_counters WHERE name = 'next_id'").fetchone()["value"]
            )
            conn.execute(
                """
                INSERT INTO agents (id, owner, capability_ref, state_fingerprint, active, created_at, updated_at)
                VALUES (?, ?, ?, ?, 1, ?, ?)
                """,
                (agent_id, owner, capability_ref, ZERO_FINGERPRINT, now, now),
            )
        return Agent(
            agent_id=agent_id,
            owner=owner,
            capability_ref=capability_ref,
            state_fingerprint=ZERO_FINGERPRINT,
            active=True,
            created_at=now,
            updated_at=now,
        )

    def get(self, agent_id: int) -> Optional[Agent]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)).fetchone()
        return self._row_to_agent(row) if row else None

    @staticmethod
    def _column_value(name: str, value: Any) -> Any:
        if name == "state_fingerprint":
            return bytes(value)
        if name == "active":
            return int(bool(value))
        return value

    def update(self, agent_id: int, caller: str, **fields: Any) -> Agent:
        """
        Apply ``fields`` if ``caller`` owns the record. Returns the stored record.

        The owner check is part of the UPDATE itself and only the named columns
        are written, so a concurrent writer's other fields survive.
        """
        _check_fields(fields)
        names = [n for n in MUTABLE_FIELDS if n in fields]
        assignments = ", ".join(f"{n} = ?" for n in names)
        params = [self._column_value(n, fields[n]) for n in names]
        with self._conn() as conn:
            cursor = conn.execute(
                f"UPDATE agents SET {assignments}, updated_at = ? WHERE id = ? AND owner = ?",
                (*params, utc_now_iso(), agent_id, caller),
            )
            if cursor.rowcount == 0:
                row = conn.execute("SELECT owner FROM agents WHERE id = ?", (agent_id,)).fetchone()
                if row is None:
                    raise AgentNotFoundError(agent_id)
                raise NotOwnerError(agent_id, caller)
            row = conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)).fetchone()
        return self._row_to_agent(row)

    def next_id(self) -> int:
        with self._conn() as conn:
            row = conn.execute("SELECT value FROM registry_counters WHERE name = 'next_id'").fetchone()
        return int(row["value"]) if row else 0

    def list(self, owner: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Agent]:
        with self._conn() as conn:
            if owner is not None:
                rows = conn.execute(
                    "SELECT * FROM agents WHERE owner = ? ORDER BY id ASC LIMIT ? OFFSET ?",
                    (owner, limit, offset),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM agents ORDER BY id ASC LIMIT ? OFFSET ?",
                    (limit, offset),
                ).fetchall()
        return [self._row_to_agent(r) for r in rows]
