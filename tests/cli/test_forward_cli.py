import socket
import subprocess
from pathlib import Path

import pytest
from typer.testing import CliRunner

from k3dflux.cli.forward import app
from k3dflux.forward import process_table

runner = CliRunner()


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GATEWAY_LOG_DIR", str(tmp_path / "forward"))
    return tmp_path


def test_logs_for_unknown_port_exits_zero():
    result = runner.invoke(app, ["logs", "9999"])
    assert result.exit_code == 0
    assert "No logs found for port 9999" in result.output


def test_logs_tail(env):
    log_dir = env / "forward"
    log_dir.mkdir()
    (log_dir / "gateway-forward-8080.log").write_text(
        "".join(f"Forwarding from 127.0.0.1:8080 -> 80 #{i}\n" for i in range(10))
    )

    result = runner.invoke(app, ["logs", "--lines", "2"])

    assert result.exit_code == 0
    assert "#8" in result.output and "#9" in result.output
    assert "#7" not in result.output


def test_stop_with_nothing_running(monkeypatch):
    monkeypatch.setattr(process_table, "find_tunnels", lambda service: [])
    result = runner.invoke(app, ["stop"])
    assert result.exit_code == 0
    assert "No active port-forwards found" in result.output


def test_status_with_nothing_running(monkeypatch):
    monkeypatch.setattr(process_table, "find_tunnels", lambda service: [])
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "Start one with: gateway-forward start" in result.output


def test_status_lists_tunnels(monkeypatch):
    monkeypatch.setattr(
        process_table,
        "find_tunnels",
        lambda service: [process_table.TunnelProcess(pid=311, command="kubectl port-forward svc/httpbin 8081:80", port=8081)],
    )
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "PID: 311" in result.output
    assert "http://localhost:8081" in result.output


def test_multiple_without_ports_is_a_usage_error():
    result = runner.invoke(app, ["multiple"])
    assert result.exit_code == 1
    assert "Please specify port numbers" in result.output


def test_start_without_kubectl_fails_before_spawning(monkeypatch, env):
    import shutil

    spawned = []
    monkeypatch.setattr(shutil, "which", lambda name: None)
    monkeypatch.setattr(subprocess, "Popen", lambda *a, **kw: spawned.append(a))

    result = runner.invoke(app, ["start", "8080"])

    assert result.exit_code == 1
    assert "kubectl not found" in result.output
    assert spawned == []
    assert not (env / "forward" / "gateway-forward-8080.log").exists()


def test_test_cannot_connect(monkeypatch):
    def refuse(address, timeout=None):
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr(socket, "create_connection", refuse)

    result = runner.invoke(app, ["test", "8085"])

    assert result.exit_code == 1
    assert "Cannot connect to localhost:8085" in result.output


def test_help_command():
    result = runner.invoke(app, ["help"])
    assert result.exit_code == 0
    assert "multiple" in result.output


def test_no_command_shows_help():
    result = runner.invoke(app, [])
    assert result.exit_code == 0
    assert "multiple" in result.output and "status" in result.output


def test_invalid_port_setting_is_reported(monkeypatch):
    monkeypatch.setenv("GATEWAY_DEFAULT_PORT", "abc")

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Invalid GATEWAY_* environment setting" in result.output
    assert "default_port" in result.output


@pytest.mark.parametrize("command", ["stop", "status"])
def test_unreadable_process_table_is_reported(monkeypatch, command):
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda argv, **kw: subprocess.CompletedProcess(argv, 1, "", "ps: operation not permitted"),
    )

    result = runner.invoke(app, [command])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "ps: operation not permitted" in result.output


def test_test_reset_connection_reports_no_response(monkeypatch):
    import requests

    class Conn:
        def __enter__(self): return self
        def __exit__(self, *exc): return False

    def reset(url, timeout=None):
        raise requests.ConnectionError("Connection reset by peer")

    monkeypatch.setattr(socket, "create_connection", lambda address, timeout=None: Conn())
    monkeypatch.setattr(requests, "get", reset)

    result = runner.invoke(app, ["test", "8080"])

    assert result.exit_code == 1
    assert "No response from gateway" in result.output
    assert "Connection reset by peer" in result.output


class _AliveTunnel:
    def __init__(self, argv, stdout=None, stderr=None, stdin=None, start_new_session=False):
        self.argv = argv
        self.pid = 7000

    def poll(self):
        return None


def test_multiple_with_a_busy_port_still_succeeds(monkeypatch):
    import shutil

    monkeypatch.setattr(shutil, "which", lambda name: f"/usr/local/bin/{name}")
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: subprocess.CompletedProcess(argv, 0, "", ""))
    monkeypatch.setattr(subprocess, "Popen", _AliveTunnel)
    monkeypatch.setattr(process_table, "port_in_use", lambda port, host="127.0.0.1": port == 8080)

    result = runner.invoke(app, ["multiple", "8080", "8081"])

    assert result.exit_code == 0, result.output
    assert result.output.count("Port 8080 already in use, skipped") == 1
    assert "Started 1 port-forward(s)" in result.output
    assert "http://localhost:8081" in result.output
