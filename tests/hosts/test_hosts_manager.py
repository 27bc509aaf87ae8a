from pathlib import Path

from k3dflux.config.models import ClusterSpec, HostsEntry
from k3dflux.hosts.manager import HostsFileManager
from k3dflux.utils.execution import ExecutionContext

MARKER = "# k3d-local-cluster"

BASE = "127.0.0.1 localhost\n::1 localhost\n"


def _hosts(tmp_path: Path, text: str = BASE) -> Path:
    f = tmp_path / "hosts"
    f.write_text(text)
    return f


def test_remove_without_match_leaves_file_untouched(tmp_path: Path):
    f = _hosts(tmp_path, "127.0.0.1 localhost")  # no trailing newline
    mtime = f.stat().st_mtime_ns

    removed = HostsFileManager(f, use_sudo=False).remove(MARKER)

    assert removed == 0
    assert f.read_text() == "127.0.0.1 localhost"
    assert f.stat().st_mtime_ns == mtime


def test_add_appends_tagged_lines(tmp_path: Path):
    f = _hosts(tmp_path)
    mgr = HostsFileManager(f, use_sudo=False)

    lines = mgr.add(MARKER, [HostsEntry(address="127.0.0.1", hostname="k3d-local.k8s.local")])

    assert lines == [f"127.0.0.1 k3d-local.k8s.local {MARKER}"]
    assert f.read_text() == BASE + f"127.0.0.1 k3d-local.k8s.local {MARKER}\n"


def test_replace_twice_keeps_a_single_block(tmp_path: Path):
    f = _hosts(tmp_path)
    mgr = HostsFileManager(f, use_sudo=False)
    entries = ClusterSpec().hosts_entries()

    mgr.replace(MARKER, entries)
    first = f.read_text()
    mgr.replace(MARKER, entries)

    assert f.read_text() == first
    assert len(mgr.block(MARKER)) == len(entries)
    assert f.read_text().startswith(BASE)


def test_remove_drops_every_marker_line_and_keeps_the_rest(tmp_path: Path):
    f = _hosts(
        tmp_path,
        BASE
        + f"127.0.0.1 k3d-local.k8s.local {MARKER}\n"
        + "10.0.0.5 nas.lan\n"
        + f"0.0.0.0 app01.k8s.local {MARKER}\n",
    )

    removed = HostsFileManager(f, use_sudo=False).remove(MARKER)

    assert removed == 2
    assert f.read_text() == BASE + "10.0.0.5 nas.lan\n"


def test_dry_run_does_not_write(tmp_path: Path):
    f = _hosts(tmp_path)
    mgr = HostsFileManager(f, use_sudo=False, ctx=ExecutionContext(dry_run=True))

    mgr.replace(MARKER, ClusterSpec().hosts_entries())

    assert f.read_text() == BASE


def test_unwritable_file_goes_through_sudo(monkeypatch, tmp_path: Path):
    import subprocess

    f = _hosts(tmp_path)
    calls = []

    def fake_run(argv, check=False):
        calls.append(argv)

    monkeypatch.setattr(subprocess, "run", fake_run)

    HostsFileManager(f, use_sudo=True).add(MARKER, [HostsEntry(address="0.0.0.0", hostname="app01.k8s.local")])

    assert calls[0][:2] == ["sudo", "cp"]
    assert calls[0][-1] == str(f)
    assert calls[1] == ["sudo", "chmod", "644", str(f)]
