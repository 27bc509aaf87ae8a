# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/forward/process_table.py
from __future__ import annotations

import logging
import os
import re
import socket
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import PreconditionError

log = logging.getLogger("k3dflux")

_PORT_RE = re.compile(r"svc/\S+\s+(\d+)")


@dataclass(frozen=True)
class TunnelProcess:
    """A live port-forward found in the process table."""

    pid: int
    command: str
    port: Optional[int]

    @property
    def url(self) -> Optional[str]:
        return f"http://localhost:{self.port}" if self.port else None


def list_processes() -> List[Tuple[int, str]]:
    """Snapshot of (pid, full command line) for every process."""
    cp = subprocess.run(
        ["ps", "-eo", "pid=,args="],
        capture_output=True,
        text=True,
        check=False,
    )
    if cp.returncode != 0:
        raise PreconditionError(f"Cannot read the process table: ps failed (rc={cp.returncode}): {cp.stderr.strip()}")

    out: List[Tuple[int, str]] = []
    for line in cp.stdout.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) != 2 or not parts[0].isdigit():
            continue
        out.append((int(parts[0]), parts[1]))
    return out


def tunnel_signature(service: str) -> re.Pattern:
    return re.compile(rf"\bkubectl\b.*\bport-forward\b.*\bsvc/{re.escape(service)}(\s|$)")


def infer_port(command: str) -> Optional[int]:
    m = _PORT_RE.search(command)
    return int(m.group(1)) if m else None


def find_tunnels(service: str, processes: Optional[List[Tuple[int, str]]] = None) -> List[TunnelProcess]:
    """
    Port-forwards to `service`, read live. The result is a snapshot: any of
    these processes may have exited by the time the caller acts on it.
    """
    signature = tunnel_signature(service)
    own_pid = os.getpid()
    rows = list_processes() if processes is None else processes
    return [
        TunnelProcess(pid=pid, command=cmd, port=infer_port(cmd))
        for pid, cmd in rows
        if pid != own_pid and signature.search(cmd)
    ]


def port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(1.0)
        return sock.connect_ex((host, port)) == 0


def port_owners(port: int) -> List[int]:
    """PIDs listening on `port` according to lsof; empty when lsof is unavailable."""
    try:
        cp = subprocess.run(
            ["lsof", "-ti", f":{port}", "-sTCP:LISTEN"],
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        log.debug("lsof not found, cannot resolve owner of port %s", port)
        return []
    return [int(p) for p in cp.stdout.split() if p.isdigit()]
