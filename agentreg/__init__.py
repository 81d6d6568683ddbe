"""
AGENTREG - Owner-Gated Agent Registry

Associates numeric identifiers with owned agent records:
- Capability reference (opaque URI), state fingerprint, active flag
- Owner-only mutation, open simulated execution
- Hash-chained notification log
- In-memory or SQLite persistence

Components:
- registry.py: Registry core (allocation, ownership, transitions, execution hash)
- models.py: Agent record, notification events
- errors.py: NotFound / NotOwner / Inactive rejections
- hashing.py: fixed-width hash primitive
- store.py: memory and SQLite record stores
- events.py: hash-chained notification logs
- auth.py: Ed25519 signed-request identities
- api_server.py: FastAPI transport
- cli.py: operator CLI
- observability.py: optional OpenTelemetry spans per registry operation
"""

__version__ = "0.1.0"

# Lazy imports - only import what's needed when used
def __getattr__(name):
    if name == "Registry":
        from .registry import Registry
        return Registry
    elif name == "Agent":
        from .models import Agent
        return Agent
    elif name == "EventKind":
        from .models import EventKind
        return EventKind
    elif name == "RegistryEvent":
        from .models import RegistryEvent
        return RegistryEvent
    elif name == "ZERO_FINGERPRINT":
        from .models import ZERO_FINGERPRINT
        return ZERO_FINGERPRINT
    elif name in ("RegistryError", "AgentNotFoundError", "NotOwnerError", "AgentInactiveError", "ConfigurationError"):
        from . import errors
        return getattr(errors, name)
    elif name == "Hasher":
        from .hashing import Hasher
        return Hasher
    elif name == "MemoryAgentStore":
        from .store import MemoryAgentStore
        return MemoryAgentStore
    elif name == "SQLiteAgentStore":
        from .store import SQLiteAgentStore
        return SQLiteAgentStore
    elif name == "MemoryEventLog":
        from .events import MemoryEventLog
        return MemoryEventLog
    elif name == "SQLiteEventLog":
        from .events import SQLiteEventLog
        return SQLiteEventLog
    elif name == "create_app":
        from .api_server import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    # Core
    "Registry",
    "Agent",
    "EventKind",
    "RegistryEvent",
    "ZERO_FINGERPRINT",
    "Hasher",
    # Errors
    "RegistryError",
    "AgentNotFoundError",
    "NotOwnerError",
    "AgentInactiveError",
    "ConfigurationError",
    # Storage
    "MemoryAgentStore",
    "SQLiteAgentStore",
    "MemoryEventLog",
    "SQLiteEventLog",
    # Transport
    "create_app",
]
