"""
AGENTREG logging utilities.

Configurable logging for registry operations, notification delivery and the
HTTP transport. Raw state payloads are never logged; fingerprints are
truncated.
"""

import logging
from typing import Any

_pkg_logger = logging.getLogger("agentreg")
_registry_logger = logging.getLogger("agentreg.registry")
_events_logger = logging.getLogger("agentreg.events")
_api_logger = logging.getLogger("agentreg.api")

_FINGERPRINT_PREVIEW_LENGTH = 8

_installed_handler: logging.Handler | None = None


def configure_logging(
    level: int = logging.INFO,
    registry_level: int | None = None,
    api_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Configure AGENTREG logging.

    Args:
        level: Default log level for all package loggers (default: INFO)
        registry_level: Log level for registry operations (default: same as level)
        api_level: Log level for the HTTP transport (default: same as level)
        handler: Custom handler to use (default: StreamHandler to stderr)
        format_string: Custom format string (default: timestamp, level, logger name)

    Example:
        ```python
        import logging
        from agentreg.logging import configure_logging

        configure_logging(level=logging.INFO, registry_level=logging.DEBUG)
        ```
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    if handler is None:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter(format_string))

    # Reconfiguring replaces the handler installed last time.
    global _installed_handler
    if _installed_handler is not None:
        _pkg_logger.removeHandler(_installed_handler)
    _installed_handler = handler

    _pkg_logger.setLevel(level)
    _pkg_logger.addHandler(handler)

    _registry_logger.setLevel(registry_level if registry_level is not None else level)
    _events_logger.setLevel(level)
    _api_logger.setLevel(api_level if api_level is not None else level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get an AGENTREG logger.

    Args:
        name: Logger name suffix (e.g., "registry", "events"). If None, returns the package logger.
    """
    if name is None:
        return _pkg_logger
    return logging.getLogger(f"agentreg.{name}")


def truncate_fingerprint(fingerprint: str | bytes) -> str:
    """Shorten a fingerprint to "abcd1234...9f8e7d6c" for log lines."""
    if isinstance(fingerprint, (bytes, bytearray)):
        fingerprint = bytes(fingerprint).hex()
    if len(fingerprint) <= _FINGERPRINT_PREVIEW_LENGTH * 2:
        return fingerprint
    return f"{fingerprint[:_FINGERPRINT_PREVIEW_LENGTH]}...{fingerprint[-_FINGERPRINT_PREVIEW_LENGTH:]}"


def log_registry_operation(
    operation: str,
    agent_id: int,
    caller: str | None = None,
    **fields: Any,
) -> None:
    """
    Log a completed registry operation at DEBUG level.

    Byte values are rendered as truncated hex.
    """
    if not _registry_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{operation}: agent_id={agent_id}"]
    if caller is not None:
        log_parts.append(f"caller={caller}")
    for key, value in fields.items():
        if isinstance(value, (bytes, bytearray)):
            value = truncate_fingerprint(value)
        log_parts.append(f"{key}={value}")

    _registry_logger.debug(" | ".join(log_parts))


__all__ = [
    "configure_logging",
    "get_logger",
    "truncate_fingerprint",
    "log_registry_operation",
]
