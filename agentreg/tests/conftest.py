"""
AGENTREG Test Configuration - shared fixtures.
"""
import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from agentreg.api_server import create_app
from agentreg.auth import derive_address, generate_agent_keypair, signed_headers
from agentreg.events import SQLiteEventLog
from agentreg.registry import Registry
from agentreg.store import SQLiteAgentStore


class FakeEnvironment:
    """Deterministic clock/entropy: call n yields timestamp 1000+n and entropy bytes([n])*32."""

    def __init__(self):
        self.calls = 0

    def monotonic_ns(self) -> int:
        return 1000 + self.calls

    def entropy(self) -> bytes:
        self.calls += 1
        return bytes([self.calls % 256]) * 32


@pytest.fixture
def fake_env():
    return FakeEnvironment()


@pytest.fixture
def registry(fake_env):
    """In-memory registry with a deterministic environment."""
    return Registry(environment=fake_env)


@pytest.fixture
def sqlite_registry(tmp_path, fake_env):
    db_path = tmp_path / "agentreg_test.db"
    return Registry(
        store=SQLiteAgentStore(db_path),
        events=SQLiteEventLog(db_path),
        environment=fake_env,
    )


@pytest.fixture
def api_client(registry):
    return TestClient(create_app(registry)), registry


def make_identity():
    """Helper: fresh Ed25519 identity."""
    private_key, public_key = generate_agent_keypair()
    return {
        "private_key": private_key,
        "public_key": public_key,
        "address": derive_address(public_key),
    }


def signed_request(client, identity, method, path, payload=None):
    """Helper: send a JSON request signed by ``identity``."""
    body = json.dumps(payload if payload is not None else {}).encode()
    headers = signed_headers(identity["private_key"], identity["public_key"], method, path, body)
    headers["Content-Type"] = "application/json"
    return client.request(method, path, content=body, headers=headers)


@pytest.fixture
def alice():
    return make_identity()


@pytest.fixture
def bob():
    return make_identity()
