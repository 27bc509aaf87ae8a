# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/cluster/orchestrator.py
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

import typer

from ..config.models import ClusterSpec
from ..deploy.executor import RunReport, run_steps
from ..deploy.steps import Step, best_effort, fatal
from ..errors import CommandError
from ..hosts.manager import HostsFileManager
from ..k3d.cli_runner import K3dCliRunner
from ..kube.kubectl import KubectlRunner
from ..observers.dispatcher import EventBus
from ..observers.events import new_ctx

log = logging.getLogger("k3dflux")


class ClusterOrchestrator:
    """
    Ensures exactly one k3d cluster matching a ClusterSpec exists.

    An existing cluster is always deleted and recreated, never reconfigured in
    place. Creation and node readiness failures are fatal; nothing is cleaned
    up afterwards.
    """

    def __init__(
        self,
        spec: ClusterSpec,
        *,
        k3d: Optional[K3dCliRunner] = None,
        kubectl: Optional[KubectlRunner] = None,
        hosts: Optional[HostsFileManager] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.spec = spec
        self.k3d = k3d or K3dCliRunner()
        self.kubectl = kubectl or KubectlRunner()
        self.hosts = hosts or HostsFileManager(spec.hosts_file)
        self.sleep = sleep

    # -------------------------------------------------------------------------
    # Step actions
    # -------------------------------------------------------------------------
    def delete_existing(self) -> bool:
        """Delete the cluster and its hosts block if present. Returns True if deleted."""
        if not self.k3d.cluster_exists(self.spec.name):
            log.info("No existing cluster named %s", self.spec.name)
            return False

        typer.secho(f"⚠ Cluster {self.spec.name} already exists, deleting...", fg="yellow")
        self.hosts.remove(self.spec.hosts_marker)
        self.k3d.delete_cluster(self.spec.name)
        self.sleep(2)
        return True

    def update_hosts(self) -> None:
        lines = self.hosts.replace(self.spec.hosts_marker, self.spec.hosts_entries())
        typer.echo(f"Hosts file updated ({self.hosts.path}):")
        for line in lines:
            typer.echo(f"  {line}")

    def create(self) -> None:
        typer.echo(f"Creating cluster {self.spec.name} from {self.spec.config_path}")
        typer.echo("This may take 1-2 minutes...")
        self.k3d.create_cluster(self.spec.config_path)

    def wait_for_nodes(self) -> None:
        self.kubectl.wait_nodes_ready(timeout_seconds=self.spec.node_ready_timeout_seconds)

    def cluster_info(self) -> None:
        typer.echo("Nodes:")
        typer.echo(self.kubectl.get_nodes_wide())
        typer.echo("Cluster details:")
        typer.echo(self.k3d.cluster_listing(self.spec.name))
        typer.echo("Node resources:")
        try:
            typer.echo(self.kubectl.top_nodes())
        except CommandError:
            typer.echo("  (kubectl top not available - install metrics-server if needed)")
        typer.echo(f"Kubeconfig context: {self.kubectl.current_context()}")
        typer.echo(f"API Server: https://{self.spec.api_host}:{self.spec.api_port}")
        typer.echo("LoadBalancer HTTP: http://localhost:80")
        typer.echo("LoadBalancer HTTPS: https://localhost:443")

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------
    def steps(self) -> List[Step]:
        return [
            fatal("delete-existing-cluster", "Deleting Existing Cluster", self.delete_existing),
            fatal("update-hosts", f"Updating {self.spec.hosts_file}", self.update_hosts),
            fatal("create-cluster", "Creating k3d Cluster", self.create),
            fatal("wait-for-nodes", "Waiting for Cluster Ready", self.wait_for_nodes),
        ]

    def info_step(self) -> Step:
        return best_effort(
            "cluster-info",
            "Cluster Information",
            self.cluster_info,
            hint="Inspect manually with: kubectl get nodes -o wide",
        )

    def ensure(self, bus: Optional[EventBus] = None) -> RunReport:
        """
        Delete-then-create. Raises FatalProvisioningError on the first failing step.
        Calling it twice in a row leaves one cluster and one hosts block.
        """
        report = run_steps(
            self.steps(),
            bus=bus,
            run_ctx=new_ctx(cluster=self.spec.name, mode="none"),
        )
        report.raise_for_failure()
        return report

    def destroy(self) -> bool:
        """Explicit teardown: delete the cluster if present and drop the hosts block."""
        deleted = False
        if self.k3d.cluster_exists(self.spec.name):
            self.k3d.delete_cluster(self.spec.name)
            deleted = True
        self.hosts.remove(self.spec.hosts_marker)
        return deleted
