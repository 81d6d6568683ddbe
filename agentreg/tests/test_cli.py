"""AGENTREG CLI tests."""
import hashlib

import pytest

from agentreg.cli import main
from agentreg.logging import get_logger


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    db_path = tmp_path / "cli_test.db"
    monkeypatch.setenv("AGENTREG_DB_PATH", str(db_path))
    monkeypatch.setenv("AGENTREG_STORAGE", "sqlite")
    monkeypatch.setenv("AGENTREG_LOG_LEVEL", "WARNING")
    yield db_path
    pkg_logger = get_logger()
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)


def run(capsys, *argv):
    main(list(argv))
    return capsys.readouterr().out


def test_register_show_count(cli_db, capsys):
    assert "Registered agent 1 (owner alice)" in run(capsys, "register", "ipfs://caps", "--as", "alice")
    out = run(capsys, "show", "1")
    assert "AGENT 1" in out
    assert "ipfs://caps" in out
    assert run(capsys, "owner", "1").strip() == "alice"
    assert run(capsys, "count").strip() == "1"


def test_update_state_and_list(cli_db, capsys):
    run(capsys, "register", "ref", "--as", "alice")
    out = run(capsys, "update-state", "1", "snapshot", "--as", "alice")
    assert hashlib.sha256(b"snapshot").hexdigest() in out
    out = run(capsys, "update-state", "1", "00ff", "--hex", "--as", "alice")
    assert hashlib.sha256(b"\x00\xff").hexdigest() in out
    assert "[1] ref (active)" in run(capsys, "list", "--owner", "alice")


def test_not_owner_exits_1(cli_db, capsys):
    run(capsys, "register", "ref", "--as", "alice")
    with pytest.raises(SystemExit) as exc_info:
        main(["update-capability", "1", "x", "--as", "bob"])
    assert exc_info.value.code == 1
    assert "NOT_OWNER" in capsys.readouterr().out


def test_inactive_execute_exits_1(cli_db, capsys):
    run(capsys, "register", "ref", "--as", "alice")
    assert len(run(capsys, "execute", "1", "data").strip()) == 64
    assert "deactivated" in run(capsys, "set-active", "1", "off", "--as", "alice")
    with pytest.raises(SystemExit) as exc_info:
        main(["execute", "1", "data"])
    assert exc_info.value.code == 1
    assert "INACTIVE" in capsys.readouterr().out


def test_missing_agent_exits_1(cli_db, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["show", "0"])
    assert exc_info.value.code == 1
    assert "NOT_FOUND" in capsys.readouterr().out


def test_events_and_verify(cli_db, capsys):
    run(capsys, "register", "ref", "--as", "alice")
    run(capsys, "update-capability", "1", "ref2", "--as", "alice")
    out = run(capsys, "events")
    assert "capability_updated agent=1" in out
    assert "agent_registered agent=1" in out
    assert "Event chain OK" in run(capsys, "verify")


def test_bad_hex_payload_exits_2(cli_db, capsys):
    run(capsys, "register", "ref", "--as", "alice")
    with pytest.raises(SystemExit) as exc_info:
        main(["update-state", "1", "zz", "--hex", "--as", "alice"])
    assert exc_info.value.code == 2
