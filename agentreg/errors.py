"""AGENTREG exception classes."""

from __future__ import annotations

from typing import Optional


class RegistryError(Exception):
    """Base exception for all registry rejections."""

    code = "REGISTRY_ERROR"

    def __init__(self, message: str, agent_id: Optional[int] = None, code: Optional[str] = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.agent_id = agent_id
        super().__init__(f"[{self.code}] {message}")


class AgentNotFoundError(RegistryError):
    """Raised when an identifier has no registered agent."""

    code = "NOT_FOUND"

    def __init__(self, agent_id: int) -> None:
        super().__init__(f"Agent not found: {agent_id}", agent_id=agent_id)


class NotOwnerError(RegistryError):
    """Raised when the caller does not own the agent it tries to mutate."""

    code = "NOT_OWNER"

    def __init__(self, agent_id: int, caller: str) -> None:
        self.caller = caller
        super().__init__(f"Caller {caller!r} does not own agent {agent_id}", agent_id=agent_id)


class AgentInactiveError(RegistryError):
    """Raised when execution is requested on a paused agent."""

    code = "INACTIVE"

    def __init__(self, agent_id: int) -> None:
        super().__init__(f"Agent is inactive: {agent_id}", agent_id=agent_id)


class ConfigurationError(RegistryError):
    """Raised when registry configuration is invalid."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
