"""
AGENTREG hash primitive.

Fixed-width (32-byte) digests for state fingerprints and execution results.
"""

from __future__ import annotations

import hashlib
from typing import Any, Callable, Dict, Union

from .errors import ConfigurationError
from .models import FINGERPRINT_SIZE

BytesLike = Union[bytes, bytearray, memoryview]

_ALGORITHMS: Dict[str, Callable[[], Any]] = {
    "sha256": hashlib.sha256,
    "sha3_256": hashlib.sha3_256,
    "blake2b": lambda: hashlib.blake2b(digest_size=FINGERPRINT_SIZE),
}

SUPPORTED_ALGORITHMS = tuple(_ALGORITHMS)


def as_bytes(payload: Union[BytesLike, str]) -> bytes:
    """Normalize a payload; text is taken as UTF-8."""
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    raise TypeError(f"Payload must be bytes or str, not {type(payload).__name__}")


class Hasher:
    """Deterministic hash over concatenated byte strings."""

    def __init__(self, algorithm: str = "sha256"):
        if algorithm not in _ALGORITHMS:
            raise ConfigurationError(
                f"Unsupported hash algorithm {algorithm!r}; expected one of {', '.join(SUPPORTED_ALGORITHMS)}"
            )
        self.algorithm = algorithm
        self._factory = _ALGORITHMS[algorithm]

    def digest(self, *parts: BytesLike) -> bytes:
        h = self._factory()
        for part in parts:
            h.update(part)
        return h.digest()

    def __repr__(self) -> str:
        return f"Hasher({self.algorithm!r})"


def encode_execution_input(agent_id: int, payload: bytes, entropy: bytes, timestamp_ns: int) -> bytes:
    """
    Packed execution input: id (32 bytes BE) | payload | entropy | timestamp (8 bytes BE).

    Every field but the payload is fixed width, so the packing is unambiguous.
    """
    return (
        agent_id.to_bytes(32, "big")
        + payload
        + entropy
        + (timestamp_ns & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "big")
    )
