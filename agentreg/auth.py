"""
AGENTREG request authentication

The registry trusts the caller identity it is handed. Over HTTP that identity
is an address derived from an Ed25519 public key, and every mutating request
carries a signature over its method, path, body digest and timestamp.

Usage:
    from agentreg.auth import generate_agent_keypair, signed_headers

    private_key, public_key = generate_agent_keypair()
    headers = signed_headers(private_key, public_key, "POST", "/agents", body)
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional, Tuple, Union

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

KEY_HEADER = "X-Agent-Key"
SIGNATURE_HEADER = "X-Agent-Signature"
SIGNED_AT_HEADER = "X-Agent-Signed-At"

ADDRESS_LENGTH = 16


# =============================================================================
# KEYS AND ADDRESSES
# =============================================================================

def generate_agent_keypair() -> Tuple[str, str]:
    """
    Generate an Ed25519 keypair.

    Returns:
        (private_key_hex, public_key_hex)

    The private key stays with the caller; only the public key travels.
    """
    signing_key = SigningKey.generate()
    private_key_hex = signing_key.encode(encoder=HexEncoder).decode()
    public_key_hex = signing_key.verify_key.encode(encoder=HexEncoder).decode()
    return private_key_hex, public_key_hex


def derive_address(public_key_hex: Union[str, bytes]) -> str:
    """Caller identity for a public key (deterministic)."""
    if isinstance(public_key_hex, bytes):
        public_key_hex = public_key_hex.decode()
    return hashlib.sha256(public_key_hex.lower().encode()).hexdigest()[:ADDRESS_LENGTH]


# =============================================================================
# SIGNING
# =============================================================================

def build_request_message(method: str, path: str, body: bytes, signed_at: str) -> bytes:
    """
    Canonical message for request signing.

    This must match on both client and server.
    """
    payload = {
        "method": method.upper(),
        "path": path,
        "body_sha256": hashlib.sha256(body or b"").hexdigest(),
        "signed_at": signed_at,
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()


def sign_request(private_key_hex: str, message: bytes) -> str:
    """Sign a request message. Returns the hex signature."""
    signing_key = SigningKey(private_key_hex.encode(), encoder=HexEncoder)
    return signing_key.sign(message).signature.hex()


def verify_request_signature(public_key_hex: str, message: bytes, signature_hex: str) -> bool:
    try:
        verify_key = VerifyKey(public_key_hex.encode(), encoder=HexEncoder)
        verify_key.verify(message, bytes.fromhex(signature_hex))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


def signed_headers(
    private_key_hex: str,
    public_key_hex: str,
    method: str,
    path: str,
    body: bytes = b"",
    signed_at: Optional[str] = None,
) -> Dict[str, str]:
    """Client helper: headers that authenticate one request."""
    signed_at = signed_at or datetime.now(timezone.utc).isoformat()
    message = build_request_message(method, path, body, signed_at)
    return {
        KEY_HEADER: public_key_hex,
        SIGNATURE_HEADER: sign_request(private_key_hex, message),
        SIGNED_AT_HEADER: signed_at,
    }


# =============================================================================
# VERIFICATION
# =============================================================================

@dataclass
class AuthResult:
    """Result of verifying one signed request."""
    success: bool
    address: Optional[str] = None
    error: Optional[str] = None


def authenticate_request(
    method: str,
    path: str,
    body: bytes,
    public_key_hex: Optional[str],
    signature_hex: Optional[str],
    signed_at: Optional[str],
    max_age_seconds: int,
    replay_cache: Optional[SignatureReplayCache] = None,
) -> AuthResult:
    """
    Check a signed request and resolve the caller address.

    With ``replay_cache`` a valid signature is accepted only once.
    """
    if not public_key_hex or not signature_hex or not signed_at:
        return AuthResult(success=False, error="Missing request signature headers")

    try:
        signed_ts = datetime.fromisoformat(signed_at)
    except ValueError:
        return AuthResult(success=False, error="Invalid signed-at timestamp")

    if signed_ts.tzinfo is None:
        signed_ts = signed_ts.replace(tzinfo=timezone.utc)

    age_seconds = abs((datetime.now(timezone.utc) - signed_ts).total_seconds())
    if age_seconds > max_age_seconds:
        return AuthResult(success=False, error="Signature timestamp out of range")

    message = build_request_message(method, path, body, signed_at)
    if not verify_request_signature(public_key_hex, message, signature_hex):
        return AuthResult(success=False, error="Invalid request signature")

    if replay_cache is not None and not replay_cache.remember(signature_hex):
        return AuthResult(success=False, error="Request signature already used")

    return AuthResult(success=True, address=derive_address(public_key_hex))


class SignatureReplayCache:
    """
    Signatures accepted within the age window.

    A timestamp check alone lets a captured request be replayed until it
    goes stale, so each accepted signature is remembered until then.
    """

    def __init__(self, max_age_seconds: int):
        self.max_age_seconds = max_age_seconds
        self._lock = Lock()
        self._seen: Dict[str, float] = {}

    def remember(self, signature_hex: str, now: Optional[float] = None) -> bool:
        """Record a signature. False if it was already used and has not expired."""
        now = time.time() if now is None else now
        # Entries outlive the window on both sides of the signed-at check.
        expires_at = now + 2 * self.max_age_seconds
        key = signature_hex.lower()
        with self._lock:
            self._seen = {sig: exp for sig, exp in self._seen.items() if exp > now}
            if key in self._seen:
                return False
            self._seen[key] = expires_at
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
