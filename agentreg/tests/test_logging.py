"""AGENTREG logging tests."""
import io
import logging

from agentreg.logging import configure_logging, get_logger, log_registry_operation, truncate_fingerprint
from agentreg.registry import Registry


def test_get_logger_hierarchy():
    assert get_logger().name == "agentreg"
    assert get_logger("registry").name == "agentreg.registry"


def test_truncate_fingerprint():
    fingerprint = bytes(range(32))
    short = truncate_fingerprint(fingerprint)
    assert short == f"{fingerprint.hex()[:8]}...{fingerprint.hex()[-8:]}"
    assert truncate_fingerprint("abcd") == "abcd"


def test_configure_logging_routes_to_handler():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    try:
        configure_logging(level=logging.DEBUG, handler=handler, format_string="%(name)s:%(message)s")
        log_registry_operation("set_active", 3, "alice", active=False)
        assert "agentreg.registry:set_active: agent_id=3 | caller=alice | active=False" in stream.getvalue()
    finally:
        get_logger().removeHandler(handler)
        for name in ("agentreg", "agentreg.registry", "agentreg.events", "agentreg.api"):
            logging.getLogger(name).setLevel(logging.NOTSET)


def test_raw_state_payload_never_logged(caplog):
    registry = Registry()
    with caplog.at_level(logging.DEBUG, logger="agentreg.registry"):
        agent_id = registry.register("ref", "alice")
        registry.update_state(agent_id, b"top-secret-state", "alice")
    assert "top-secret-state" not in caplog.text
    assert b"top-secret-state".hex() not in caplog.text
    assert "update_state: agent_id=1" in caplog.text
