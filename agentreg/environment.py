"""Clock and entropy source used by execution."""

from __future__ import annotations

import secrets
import time
from threading import Lock

ENTROPY_SIZE = 32


class SystemEnvironment:
    """Monotonic nanosecond clock plus random bytes from the OS."""

    def __init__(self):
        self._lock = Lock()
        self._last_ns = 0

    def monotonic_ns(self) -> int:
        # Strictly increasing even when the clock resolution repeats a reading.
        with self._lock:
            now = time.monotonic_ns()
            if now <= self._last_ns:
                now = self._last_ns + 1
            self._last_ns = now
            return now

    def entropy(self) -> bytes:
        return secrets.token_bytes(ENTROPY_SIZE)
