"""
AGENTREG Data Models

Agent records and registry notifications.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

FINGERPRINT_SIZE = 32
ZERO_FINGERPRINT = bytes(FINGERPRINT_SIZE)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventKind(str, Enum):
    AGENT_REGISTERED = "agent_registered"
    CAPABILITY_UPDATED = "capability_updated"
    STATE_UPDATED = "state_updated"
    STATUS_CHANGED = "status_changed"
    AGENT_EXECUTED = "agent_executed"


@dataclass(frozen=True)
class Agent:
    """Snapshot of one registered agent. Updates replace the whole snapshot."""
    agent_id: int
    owner: str
    capability_ref: str
    state_fingerprint: bytes = ZERO_FINGERPRINT
    active: bool = True
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "agent_id": self.agent_id,
            "owner": self.owner,
            "capability_ref": self.capability_ref,
            "state_fingerprint": self.state_fingerprint.hex(),
            "active": self.active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class RegistryEvent:
    """One entry of the hash-chained notification log."""
    seq: int
    kind: EventKind
    agent_id: int
    data: Dict[str, Any]
    timestamp: str
    prev_hash: Optional[str] = None
    hash: str = ""

    def payload_without_hash(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "kind": self.kind.value,
            "agent_id": self.agent_id,
            "data": self.data,
            "timestamp": self.timestamp,
            "prev_hash": self.prev_hash,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = self.payload_without_hash()
        d["hash"] = self.hash
        return d
