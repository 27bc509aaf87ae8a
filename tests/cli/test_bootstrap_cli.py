import io
import shutil
import subprocess
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

from k3dflux.cli.bootstrap import app

runner = CliRunner()

HOSTS = "127.0.0.1 localhost\n"


class FakeCli:
    """
    Stands in for docker/k3d/kubectl/flux. Streamed commands go through
    Popen, checks and waits through run.
    """

    def __init__(self, create_rc=0, converge=True):
        self.create_rc = create_rc
        self.converge = converge
        self.runs = []
        self.streams = []

    def run(self, argv, check=False, text=False, capture_output=False, input=None, env=None):
        self.runs.append(argv)
        if argv[:2] == ["k3d", "version"]:
            return subprocess.CompletedProcess(argv, 0, "k3d version v5.6.0\n", "")
        if argv[:5] == ["k3d", "cluster", "list", "-o", "json"]:
            return subprocess.CompletedProcess(argv, 0, "[]", "")
        if argv[:2] == ["kubectl", "wait"] and "nodes" not in argv and not self.converge:
            return subprocess.CompletedProcess(argv, 1, "", f"error: timed out waiting for the condition on {argv[3]}")
        return subprocess.CompletedProcess(argv, 0, "", "")

    def popen(self, argv, text=False, stdout=None, stderr=None, env=None):
        self.streams.append(argv)
        fail = argv[:3] == ["k3d", "cluster", "create"] and self.create_rc
        return _Proc("ERRO[0003] port 6443 is already allocated\n" if fail else "done\n", self.create_rc if fail else 0)


class _Proc:
    def __init__(self, output, rc):
        self.stdout = io.StringIO(output)
        self._rc = rc
        self.returncode = None

    def wait(self):
        self.returncode = self._rc
        return self._rc


@pytest.fixture
def env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(shutil, "which", lambda name: f"/usr/local/bin/{name}")

    k3d_cfg = tmp_path / "k3d-local-cluster.yaml"
    k3d_cfg.write_text("apiVersion: k3d.io/v1alpha5\nkind: Simple\n")
    hosts = tmp_path / "hosts"
    hosts.write_text(HOSTS)
    cfg = tmp_path / "bootstrap.yaml"
    cfg.write_text(
        textwrap.dedent(f"""
            cluster:
              config_path: {k3d_cfg}
              hosts_file: {hosts}
        """)
    )
    return cfg, hosts


def _install(monkeypatch, fake: FakeCli) -> FakeCli:
    monkeypatch.setattr(subprocess, "run", fake.run)
    monkeypatch.setattr(subprocess, "Popen", fake.popen)
    return fake


def test_conflicting_modes_rejected_before_any_command(monkeypatch, env):
    fake = _install(monkeypatch, FakeCli())

    result = runner.invoke(app, ["--admin", "--read-only"])

    assert result.exit_code != 0
    assert fake.runs == [] and fake.streams == []


def test_flux_alias_conflicts_with_read_only(monkeypatch, env):
    fake = _install(monkeypatch, FakeCli())
    result = runner.invoke(app, ["--flux", "--read-only"])
    assert result.exit_code != 0
    assert fake.runs == []


def test_unknown_flag_rejected(monkeypatch, env):
    fake = _install(monkeypatch, FakeCli())
    result = runner.invoke(app, ["--write-back"])
    assert result.exit_code == 2
    assert fake.runs == []


def test_read_only_with_convergence_timeout_exits_zero(monkeypatch, env):
    cfg, hosts = env
    fake = _install(monkeypatch, FakeCli(converge=False))

    result = runner.invoke(app, ["--read-only", "--config", str(cfg)])

    assert result.exit_code == 0, result.output
    assert "Cluster k3d-local is ready!" in result.output
    assert "wait-sync" in result.output
    assert ["flux", "install", "--namespace=flux-system", "--components-extra=source-watcher"] in fake.streams
    assert not any(a[:2] == ["flux", "bootstrap"] for a in fake.streams)
    assert ["kubectl", "apply", "-f", "-"] in fake.runs
    assert "k3d-local.k8s.local # k3d-local-cluster" in hosts.read_text()


def test_create_failure_exits_one(monkeypatch, env):
    cfg, hosts = env
    fake = _install(monkeypatch, FakeCli(create_rc=1))

    result = runner.invoke(app, ["--admin", "--config", str(cfg)])

    assert result.exit_code == 1
    assert "port 6443 is already allocated" in result.output
    assert not any(a[:2] == ["kubectl", "wait"] for a in fake.runs)
    assert not any(a[0] == "flux" for a in fake.streams)


def test_dry_run_mutates_nothing(monkeypatch, env):
    cfg, hosts = env
    fake = _install(monkeypatch, FakeCli())

    result = runner.invoke(app, ["--read-only", "--dry-run", "--config", str(cfg)])

    assert result.exit_code == 0, result.output
    assert fake.streams == []
    assert not any(a[:2] in (["kubectl", "apply"], ["kubectl", "wait"]) for a in fake.runs)
    assert hosts.read_text() == HOSTS


def test_destroy(monkeypatch, env):
    cfg, hosts = env
    hosts.write_text(HOSTS + "127.0.0.1 k3d-local.k8s.local # k3d-local-cluster\n")
    _install(monkeypatch, FakeCli())

    result = runner.invoke(app, ["destroy", "--config", str(cfg)])

    assert result.exit_code == 0, result.output
    assert "No cluster named k3d-local" in result.output
    assert hosts.read_text() == HOSTS


def test_malformed_config_is_reported(monkeypatch, env, tmp_path: Path):
    fake = _install(monkeypatch, FakeCli())
    bad = tmp_path / "broken.yaml"
    bad.write_text("cluster: [unclosed\n")

    result = runner.invoke(app, ["--config", str(bad)])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert f"Cannot load config {bad}" in result.output
    assert fake.runs == [] and fake.streams == []


def test_invalid_config_values_are_reported(monkeypatch, env, tmp_path: Path):
    _install(monkeypatch, FakeCli())
    bad = tmp_path / "invalid.yaml"
    bad.write_text("cluster:\n  api_port: not-a-port\n")

    result = runner.invoke(app, ["destroy", "--config", str(bad)])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "api_port" in result.output
