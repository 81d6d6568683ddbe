"""
AGENTREG Registry

Associates a numeric identifier with an owned agent record: a capability
reference, a state fingerprint and an active flag.

Usage:
    from agentreg.registry import Registry

    registry = Registry()
    agent_id = registry.register("ipfs://caps.json", caller="alice")
    registry.update_state(agent_id, b"snapshot", caller="alice")
    result = registry.execute(agent_id, b"input")

Identifiers start at 1; 0 is never a valid agent. Only the owner recorded at
registration may mutate a record. Each mutation is a single owner-checked
store update, so it is atomic with respect to the record even when several
processes share one SQLite database.
"""

from __future__ import annotations

from collections import deque
from threading import Lock, RLock
from typing import Callable, Deque, List, Optional, Tuple, Union

from . import config
from .environment import SystemEnvironment
from .errors import AgentInactiveError, AgentNotFoundError
from .events import MemoryEventLog, SQLiteEventLog
from .hashing import BytesLike, Hasher, as_bytes, encode_execution_input
from .logging import get_logger, log_registry_operation
from .models import Agent, EventKind, RegistryEvent
from .observability import registry_span
from .store import MemoryAgentStore, SQLiteAgentStore

logger = get_logger("registry")

Payload = Union[BytesLike, str]
Subscriber = Callable[[RegistryEvent], None]


class Registry:
    """Owner-gated registry of agent records."""

    def __init__(self, store=None, events=None, hasher: Optional[Hasher] = None, environment=None, tracer=None):
        self.store = store if store is not None else MemoryAgentStore()
        self.events = events if events is not None else MemoryEventLog()
        self.hasher = hasher or Hasher()
        self.environment = environment or SystemEnvironment()
        self.tracer = tracer
        self._alloc_lock = Lock()
        self._emit_lock = RLock()
        self._pending: Deque[Tuple[EventKind, int, dict]] = deque()
        self._subscribers: List[Subscriber] = []

    @classmethod
    def from_config(cls) -> "Registry":
        """Build a registry from AGENTREG_* environment settings."""
        hasher = Hasher(config.get_hash_algorithm())
        db_path = config.get_sqlite_path()
        if db_path is None:
            return cls(hasher=hasher)
        return cls(store=SQLiteAgentStore(db_path), events=SQLiteEventLog(db_path), hasher=hasher)

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------

    def _check_id(self, agent_id: int) -> None:
        # Identifiers are never deleted, so anything in 1..next_id is registered.
        if not isinstance(agent_id, int) or isinstance(agent_id, bool) or agent_id <= 0:
            raise AgentNotFoundError(agent_id)
        if agent_id > self.store.next_id():
            raise AgentNotFoundError(agent_id)

    def _load(self, agent_id: int) -> Agent:
        self._check_id(agent_id)
        agent = self.store.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def _span(self, operation: str, agent_id: Optional[int] = None):
        return registry_span(operation, agent_id, tracer=self.tracer)

    def _emit(self, kind: EventKind, agent_id: int, data: dict) -> None:
        """
        Queue a notification and deliver everything still pending, oldest first.

        The state change has already happened, so a failing sink never fails
        the operation. A notification the sink rejects stays queued and is
        retried ahead of the next one (or by ``retry_pending``), giving
        at-least-once delivery for the life of this registry.
        """
        with self._emit_lock:
            self._pending.append((kind, agent_id, data))
            self._flush_pending()

    def _flush_pending(self) -> List[RegistryEvent]:
        delivered: List[RegistryEvent] = []
        while self._pending:
            kind, agent_id, data = self._pending[0]
            try:
                event = self.events.append(kind, agent_id, data)
            except Exception:
                logger.exception(
                    "Failed to record %s for agent %s; %d notification(s) pending",
                    kind.value,
                    agent_id,
                    len(self._pending),
                )
                break
            self._pending.popleft()
            delivered.append(event)
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    logger.exception("Subscriber %r failed on event %s", callback, event.seq)
        return delivered

    @property
    def pending_count(self) -> int:
        """Notifications the sink has not accepted yet."""
        return len(self._pending)

    def retry_pending(self) -> int:
        """Try to deliver queued notifications. Returns how many were logged."""
        with self._emit_lock:
            return len(self._flush_pending())

    # -------------------------------------------------------------------------
    # mutations
    # -------------------------------------------------------------------------

    def register(self, capability_ref: str, caller: str) -> int:
        """Register a new agent owned by ``caller`` and return its identifier."""
        if not caller:
            raise ValueError("caller identity must be non-empty")
        with self._span("register") as span:
            with self._alloc_lock:
                agent = self.store.create(caller, capability_ref)
            if span is not None:
                span.set_attribute("agentreg.agent_id", agent.agent_id)
            log_registry_operation("register", agent.agent_id, caller, capability_ref=capability_ref)
            self._emit(
                EventKind.AGENT_REGISTERED,
                agent.agent_id,
                {"owner": caller, "capability_ref": capability_ref},
            )
        return agent.agent_id

    def update_capability(self, agent_id: int, capability_ref: str, caller: str) -> None:
        with self._span("update_capability", agent_id):
            self._check_id(agent_id)
            self.store.update(agent_id, caller, capability_ref=capability_ref)
            log_registry_operation("update_capability", agent_id, caller, capability_ref=capability_ref)
            self._emit(EventKind.CAPABILITY_UPDATED, agent_id, {"capability_ref": capability_ref})

    def update_state(self, agent_id: int, raw_payload: Payload, caller: str) -> bytes:
        """
        Replace the state fingerprint with Hash(raw_payload).

        The payload is never interpreted or retained; only its digest is stored.
        Returns the new fingerprint.
        """
        data = as_bytes(raw_payload)
        with self._span("update_state", agent_id):
            self._check_id(agent_id)
            fingerprint = self.hasher.digest(data)
            self.store.update(agent_id, caller, state_fingerprint=fingerprint)
            log_registry_operation("update_state", agent_id, caller, fingerprint=fingerprint)
            self._emit(EventKind.STATE_UPDATED, agent_id, {"state_fingerprint": fingerprint.hex()})
        return fingerprint

    def set_active(self, agent_id: int, active: bool, caller: str) -> None:
        """Pause or resume an agent. Setting the current value still notifies."""
        active = bool(active)
        with self._span("set_active", agent_id):
            self._check_id(agent_id)
            self.store.update(agent_id, caller, active=active)
            log_registry_operation("set_active", agent_id, caller, active=active)
            self._emit(EventKind.STATUS_CHANGED, agent_id, {"active": active})

    def execute(self, agent_id: int, payload: Payload) -> bytes:
        """
        Simulate running an active agent and return a result fingerprint.

        The result is Hash(id | payload | entropy | timestamp) with fresh
        entropy and a monotonic timestamp on every call, so identical
        payloads give different results. It is a placeholder with no
        reproducibility or verifiability guarantee. Any caller may execute;
        stored state is not touched.
        """
        data = as_bytes(payload)
        with self._span("execute", agent_id):
            agent = self._load(agent_id)
            if not agent.active:
                raise AgentInactiveError(agent_id)
            packed = encode_execution_input(
                agent_id,
                data,
                self.environment.entropy(),
                self.environment.monotonic_ns(),
            )
            result = self.hasher.digest(packed)
            log_registry_operation("execute", agent_id, result=result)
            self._emit(
                EventKind.AGENT_EXECUTED,
                agent_id,
                {"payload": data.hex(), "result_fingerprint": result.hex()},
            )
        return result

    # -------------------------------------------------------------------------
    # reads
    # -------------------------------------------------------------------------

    def get_agent(self, agent_id: int) -> Agent:
        return self._load(agent_id)

    def owner_of(self, agent_id: int) -> str:
        return self.get_agent(agent_id).owner

    def total_count(self) -> int:
        """Number of identifiers ever issued."""
        return self.store.next_id()

    def list_agents(self, owner: Optional[str] = None, limit: int = config.DEFAULT_PAGE_SIZE, offset: int = 0) -> List[Agent]:
        limit = max(0, min(limit, config.MAX_PAGE_SIZE))
        return self.store.list(owner=owner, limit=limit, offset=max(0, offset))

    def list_events(self, agent_id: Optional[int] = None, limit: int = config.DEFAULT_PAGE_SIZE, offset: int = 0) -> List[RegistryEvent]:
        limit = max(0, min(limit, config.MAX_PAGE_SIZE))
        return self.events.list_events(agent_id=agent_id, limit=limit, offset=max(0, offset))

    def verify_events(self) -> bool:
        return self.events.verify_chain()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` with every event after it is logged. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def __repr__(self) -> str:
        return f"Registry(store={type(self.store).__name__}, hasher={self.hasher.algorithm!r})"


__all__ = ["Registry"]
