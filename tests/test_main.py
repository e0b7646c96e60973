"""
Tests for the fleetctl command-line interface.
"""
import json
from unittest.mock import MagicMock, patch

import pytest

from fleetctl.main import main


@pytest.fixture
def snapshot(tmp_path, make_record):
    path = tmp_path / "assets.json"
    path.write_text(json.dumps({"assets": [
        make_record("a1"),
        make_record("a2"),
        make_record("a3", status="offline", monitoring="stopped"),
    ]}))
    return path


@pytest.fixture
def fast_config(tmp_path):
    path = tmp_path / "console_config.json"
    path.write_text(json.dumps({
        "console": {"config_version": 1},
        "control": {"stop_convergence_delay_sec": 0, "uninstall_removal_delay_sec": 0},
    }))
    return str(path)


def _run(capsys, *argv):
    code = main(["--log-level", "ERROR", *argv])
    return code, capsys.readouterr()


def _saved(snapshot):
    return {record["id"]: record for record in json.loads(snapshot.read_text())["assets"]}


def test_actions_lists_available_actions(capsys, snapshot):
    code, out = _run(capsys, "actions", "--snapshot", str(snapshot), "--role", "manager", "--asset", "a1")

    assert code == 0
    report = json.loads(out.out)
    assert report[0]["assetId"] == "a1"
    assert report[0]["actions"] == ["pause", "restart", "stop", "update_config", "view_logs"]
    assert report[0]["confirmationRequired"] == ["stop"]


def test_actions_defaults_to_all_assets(capsys, snapshot):
    code, out = _run(capsys, "actions", "--snapshot", str(snapshot), "--role", "guest")
    assert code == 0
    assert [entry["assetId"] for entry in json.loads(out.out)] == ["a1", "a2", "a3"]


def test_actions_unknown_asset(capsys, snapshot):
    code, out = _run(capsys, "actions", "--snapshot", str(snapshot), "--role", "admin", "--asset", "zz")
    assert code == 1
    assert "Unknown asset" in out.err


def test_execute_pause_and_write_back(capsys, snapshot):
    code, out = _run(capsys, "execute", "--snapshot", str(snapshot), "--role", "manager",
                     "--action", "pause", "--asset", "a1", "--write-back")

    assert code == 0
    assert json.loads(out.out)["outcome"] == "applied"
    assert _saved(snapshot)["a1"]["monitoringStatus"] == "paused"


def test_execute_denied(capsys, snapshot):
    code, out = _run(capsys, "execute", "--snapshot", str(snapshot), "--role", "user",
                     "--action", "pause", "--asset", "a1")
    assert code == 1
    assert json.loads(out.out)["outcome"] == "denied"


def test_destructive_action_declined(capsys, monkeypatch, snapshot):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    code, out = _run(capsys, "execute", "--snapshot", str(snapshot), "--role", "manager",
                     "--action", "stop", "--asset", "a1", "--write-back")

    assert code == 1
    assert "not confirmed" in out.err
    assert _saved(snapshot)["a1"]["status"] == "online"


def test_destructive_action_without_terminal(capsys, monkeypatch, snapshot):
    def no_input(prompt):
        raise EOFError

    monkeypatch.setattr("builtins.input", no_input)
    code, _ = _run(capsys, "execute", "--snapshot", str(snapshot), "--role", "admin",
                   "--action", "uninstall", "--asset", "a1")
    assert code == 1


def test_stop_confirmed_waits_for_convergence(capsys, monkeypatch, snapshot, fast_config):
    monkeypatch.setattr("builtins.input", lambda prompt: "yes")
    code, out = _run(capsys, "--config", fast_config, "execute", "--snapshot", str(snapshot),
                     "--role", "manager", "--action", "stop", "--asset", "a1", "--wait", "--write-back")

    assert code == 0
    assert json.loads(out.out)["asset"]["status"] == "stopping"
    saved = _saved(snapshot)["a1"]
    assert saved["status"] == "offline"
    assert saved["monitoringStatus"] == "stopped"


def test_bulk_uninstall_removes_records(capsys, snapshot, fast_config):
    code, out = _run(capsys, "--config", fast_config, "execute", "--snapshot", str(snapshot),
                     "--role", "system_admin", "--action", "uninstall", "--asset", "a1",
                     "--asset", "a3", "--yes", "--wait", "--write-back")

    assert code == 0
    assert json.loads(out.out)["successCount"] == 2
    assert sorted(_saved(snapshot)) == ["a2"]


def test_bulk_force_stop_rejected_for_manager(capsys, snapshot):
    code, out = _run(capsys, "execute", "--snapshot", str(snapshot), "--role", "manager",
                     "--action", "force_stop", "--asset", "a1", "--asset", "a2", "--yes")
    assert code == 1
    assert "rejected" in json.loads(out.out)


def test_bulk_partial_success_exit_code(capsys, snapshot):
    code, out = _run(capsys, "execute", "--snapshot", str(snapshot), "--role", "manager",
                     "--action", "pause", "--asset", "a1", "--asset", "a3")
    result = json.loads(out.out)
    assert code == 1
    assert [item["status"] for item in result["items"]] == ["applied", "denied"]


@pytest.mark.parametrize("argv", [
    ["execute", "--role", "admin", "--action", "pause", "--asset", "a1"],
    ["execute", "--snapshot", "missing.json", "--role", "admin", "--action", "pause", "--asset", "a1"],
    ["actions", "--snapshot", "SNAPSHOT", "--role", "overlord"],
    ["execute", "--snapshot", "SNAPSHOT", "--role", "admin", "--action", "explode", "--asset", "a1"],
])
def test_invalid_invocations(capsys, snapshot, argv):
    argv = [str(snapshot) if arg == "SNAPSHOT" else arg for arg in argv]
    code, out = _run(capsys, *argv)
    assert code == 1
    assert "ERROR" in out.err


def test_api_token_option_reaches_registry_requests(capsys, tmp_path, make_record):
    path = tmp_path / "console_config.json"
    path.write_text(json.dumps({
        "console": {"config_version": 1},
        "registry": {"url": "https://registry.example.com/", "api_token": "tok-config"},
    }))
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = {"assets": [make_record("a1")]}

    with patch("fleetctl.communication.http_client.requests.request", return_value=response) as mock_request:
        code, out = _run(capsys, "--config", str(path), "--api-token", "tok-cli", "actions", "--role", "guest")

    assert code == 0
    assert json.loads(out.out)[0]["assetId"] == "a1"
    assert mock_request.call_args[1]["headers"]["Authorization"] == "Bearer tok-cli"


def test_missing_config_file(capsys):
    code, out = _run(capsys, "--config", "/nonexistent/console.json", "actions", "--role", "admin")
    assert code == 1
    assert "configuration" in out.err


def test_no_command_prints_help(capsys):
    assert main([]) == 1
