# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/forward/manager.py
from __future__ import annotations

import json
import logging
import os
import signal
import socket
import subprocess
import time
import webbrowser
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import requests

from ..config.models import ForwardSettings
from ..errors import PreconditionError, SessionStartError, UsageError
from ..kube.kubectl import KubectlRunner
from . import process_table
from .process_table import TunnelProcess

log = logging.getLogger("k3dflux")

# (port, owner pids) -> kill them?
ConfirmFn = Callable[[int, List[int]], bool]


@dataclass
class TunnelSession:
    pid: int
    port: int
    namespace: str
    service: str
    target_port: int
    log_path: Path

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"


@dataclass
class BatchReport:
    started: List[TunnelSession] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)   # port already in use
    failed: List[int] = field(default_factory=list)    # process died on startup


class ProbeOutcome(str, Enum):
    OK = "ok"
    CANNOT_CONNECT = "cannot-connect"
    REQUEST_FAILED = "request-failed"
    EMPTY_RESPONSE = "empty-response"


@dataclass
class ProbeResult:
    port: int
    outcome: ProbeOutcome
    body: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is ProbeOutcome.OK


class PortForwardManager:
    """
    Starts, finds and stops detached `kubectl port-forward` processes.

    There is no session store: the process table is read on every call and
    acted on immediately. A tunnel that dies on its own is only noticed at
    the next status/stop scan.
    """

    def __init__(
        self,
        settings: Optional[ForwardSettings] = None,
        *,
        kubectl: Optional[KubectlRunner] = None,
        confirm: Optional[ConfirmFn] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or ForwardSettings()
        self.kubectl = kubectl or KubectlRunner()
        self.confirm = confirm
        self.sleep = sleep

    # ------------------------------------------------------------------ checks
    def check_prerequisites(self) -> None:
        s = self.settings
        if not self.kubectl.available():
            raise PreconditionError("kubectl not found. Please install kubectl first.")
        if not self.kubectl.cluster_reachable():
            raise PreconditionError("Cannot access Kubernetes cluster. Please check your kubeconfig.")
        if not self.kubectl.namespace_exists(s.namespace):
            raise PreconditionError(f"Namespace '{s.namespace}' not found. Have you deployed the example app?")
        if not self.kubectl.service_exists(s.service, s.namespace):
            raise PreconditionError(f"Service '{s.service}' not found in namespace '{s.namespace}'.")

    def _free_port(self, port: int) -> None:
        if not process_table.port_in_use(port):
            return

        pids = process_table.port_owners(port)
        owners = ", ".join(str(p) for p in pids) or "unknown"
        if self.confirm is None or not self.confirm(port, pids):
            raise PreconditionError(f"Port {port} is already in use (PID: {owners})")

        for pid in pids:
            try:
                os.kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            log.info("Killed PID %s holding port %s", pid, port)
        self.sleep(1)

    # ------------------------------------------------------------------ spawn
    def _spawn(self, port: int) -> subprocess.Popen:
        s = self.settings
        argv = self.kubectl.port_forward_argv(
            namespace=s.namespace,
            service=s.service,
            port=port,
            target_port=s.target_port,
        )
        log_path = s.log_path(port)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log.debug("$ %s > %s", " ".join(argv), log_path)

        with open(log_path, "w") as out:
            return subprocess.Popen(
                argv,
                stdout=out,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )

    def _session(self, proc: subprocess.Popen, port: int) -> TunnelSession:
        s = self.settings
        return TunnelSession(
            pid=proc.pid,
            port=port,
            namespace=s.namespace,
            service=s.service,
            target_port=s.target_port,
            log_path=s.log_path(port),
        )

    # ------------------------------------------------------------------ commands
    def start(self, port: Optional[int] = None) -> TunnelSession:
        port = port or self.settings.default_port
        self.check_prerequisites()
        self._free_port(port)

        proc = self._spawn(port)
        self.sleep(self.settings.startup_grace_seconds)

        if proc.poll() is not None:
            tail = self.logs(port)
            raise SessionStartError(port, "".join(tail or []))

        log.info("port-forward started pid=%s port=%s", proc.pid, port)
        return self._session(proc, port)

    def status(self) -> List[TunnelProcess]:
        return process_table.find_tunnels(self.settings.service)

    def stop(self) -> List[int]:
        """SIGTERM every matching tunnel. Returns the pids actually signalled."""
        stopped: List[int] = []
        for tunnel in self.status():
            try:
                os.kill(tunnel.pid, signal.SIGTERM)
            except ProcessLookupError:
                # exited between scan and kill
                continue
            except PermissionError:
                log.warning("Not allowed to stop PID %s", tunnel.pid)
                continue
            stopped.append(tunnel.pid)
            log.info("Stopped port-forward pid=%s", tunnel.pid)
        return stopped

    def restart(self, port: Optional[int] = None) -> TunnelSession:
        self.stop()
        self.sleep(1)
        return self.start(port)

    def multiple(self, ports: Iterable[int]) -> BatchReport:
        ports = list(ports)
        if not ports:
            raise UsageError("Please specify port numbers")

        self.check_prerequisites()
        report = BatchReport()
        for port in ports:
            if process_table.port_in_use(port):
                log.info("Port %s already in use, skipping", port)
                report.skipped.append(port)
                continue

            proc = self._spawn(port)
            self.sleep(1)
            if proc.poll() is not None:
                log.info("port-forward on %s exited during startup", port)
                report.failed.append(port)
                continue
            report.started.append(self._session(proc, port))
        return report

    def test(self, port: Optional[int] = None) -> ProbeResult:
        """
        Raw TCP connect first; the HTTP probe only runs once that succeeds.
        A transport error and an empty body are reported as different outcomes.
        """
        port = port or self.settings.default_port
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=self.settings.connect_timeout_seconds):
                pass
        except OSError as e:
            return ProbeResult(port, ProbeOutcome.CANNOT_CONNECT, error=str(e))

        try:
            r = requests.get(f"http://localhost:{port}/get", timeout=self.settings.http_timeout_seconds)
        except requests.RequestException as e:
            return ProbeResult(port, ProbeOutcome.REQUEST_FAILED, error=str(e))

        body = r.text or ""
        if not body.strip():
            return ProbeResult(port, ProbeOutcome.EMPTY_RESPONSE)

        try:
            body = json.dumps(json.loads(body), indent=2)
        except ValueError:
            pass
        return ProbeResult(port, ProbeOutcome.OK, body=body)

    def logs(self, port: Optional[int] = None, lines: int = 20) -> Optional[List[str]]:
        """Tail of the per-port log, or None when there is no log for the port."""
        port = port or self.settings.default_port
        path = self.settings.log_path(port)
        if not path.is_file():
            return None
        with path.open(errors="replace") as f:
            return list(deque(f, maxlen=lines))

    def browser(self, port: Optional[int] = None) -> bool:
        port = port or self.settings.default_port
        return webbrowser.open(f"http://localhost:{port}")
