"""
AGENTREG Configuration - all environment-driven settings in one place.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

AGENTREG_VERSION = "0.1.0"

# --- Storage ---
DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "agentreg.db"
STORAGE_BACKENDS = ("sqlite", "memory")


def get_db_path() -> Path:
    raw = os.environ.get("AGENTREG_DB_PATH")
    return Path(raw) if raw else DEFAULT_DB_PATH


def get_storage_backend() -> str:
    backend = os.environ.get("AGENTREG_STORAGE", "sqlite").strip().lower()
    if backend not in STORAGE_BACKENDS:
        from .errors import ConfigurationError
        raise ConfigurationError(
            f"Unsupported AGENTREG_STORAGE {backend!r}; expected one of {', '.join(STORAGE_BACKENDS)}"
        )
    return backend


def get_sqlite_path() -> Optional[Path]:
    """SQLite path when persistence is enabled, else None (pure memory)."""
    if get_storage_backend() == "memory":
        return None
    return get_db_path()


# --- Hashing ---
def get_hash_algorithm() -> str:
    return os.environ.get("AGENTREG_HASH_ALGORITHM", "sha256").strip().lower()


# --- Request signing ---
def get_signature_max_age() -> int:
    return int(os.environ.get("AGENTREG_SIGNATURE_MAX_AGE_SECONDS", "900"))


# --- Logging ---
def get_log_level() -> int:
    raw = os.environ.get("AGENTREG_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


# --- HTTP server ---
def get_cors_origins() -> List[str]:
    origins = [o.strip() for o in os.environ.get("AGENTREG_CORS_ORIGINS", "").split(",") if o.strip()]
    return origins or ["http://localhost:3000", "http://localhost:5173"]


def get_server_address() -> tuple:
    host = os.environ.get("AGENTREG_HOST", "127.0.0.1")
    port = int(os.environ.get("AGENTREG_PORT", "8000"))
    return host, port


# --- Listing ---
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
