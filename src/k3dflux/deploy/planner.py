# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
from typing import List, Optional

import typer

from ..cluster.orchestrator import ClusterOrchestrator
from ..config.models import BootstrapConfig, GitOpsMode
from ..errors import PreconditionError
from ..flux.cli_runner import FluxCliRunner
from ..gitops.selector import GitOpsModeSelector
from ..k3d.cli_runner import DockerCliRunner, K3dCliRunner
from ..kube.kubectl import KubectlRunner
from .steps import Step, fatal

log = logging.getLogger("k3dflux")


def check_prerequisites(
    cfg: BootstrapConfig,
    mode: GitOpsMode,
    *,
    k3d: K3dCliRunner,
    kubectl: KubectlRunner,
    flux: FluxCliRunner,
    docker: DockerCliRunner,
) -> None:
    """Each missing prerequisite raises PreconditionError with an install hint."""
    if not k3d.available():
        raise PreconditionError("k3d is not installed (install with: brew install k3d)")
    typer.secho(f"✓ k3d installed: {k3d.version()}", fg="green")

    if not docker.running():
        raise PreconditionError("Docker is not running (please start Docker Desktop)")
    typer.secho("✓ Docker is running", fg="green")

    if not kubectl.available():
        raise PreconditionError("kubectl is not installed (install with: brew install kubectl)")
    typer.secho("✓ kubectl installed", fg="green")

    config_path = cfg.cluster.config_path
    if not config_path.is_file():
        raise PreconditionError(f"Config file not found: {config_path} (expected location: {config_path.resolve()})")
    typer.secho(f"✓ Config file found: {config_path}", fg="green")

    if mode is not GitOpsMode.NONE:
        if not flux.available():
            raise PreconditionError("flux is not installed (install with: brew install fluxcd/tap/flux)")
        typer.secho("✓ flux installed", fg="green")

    if mode is GitOpsMode.ADMIN and not os.environ.get("GITHUB_TOKEN"):
        log.warning("GITHUB_TOKEN is not set; flux bootstrap will prompt for a token")


def plan(
    cfg: BootstrapConfig,
    mode: GitOpsMode,
    *,
    orchestrator: Optional[ClusterOrchestrator] = None,
    selector: Optional[GitOpsModeSelector] = None,
    docker: Optional[DockerCliRunner] = None,
) -> List[Step]:
    """
    Full provisioning plan, in order:
    prerequisites -> cluster (delete, hosts, create, wait) -> cluster info
    -> gitops install -> convergence waits -> gitops status.
    """
    orchestrator = orchestrator or ClusterOrchestrator(cfg.cluster)
    selector = selector or GitOpsModeSelector(cfg.gitops, kubectl=orchestrator.kubectl)
    docker = docker or DockerCliRunner(ctx=orchestrator.k3d.ctx)

    def _prereqs() -> None:
        check_prerequisites(
            cfg,
            mode,
            k3d=orchestrator.k3d,
            kubectl=orchestrator.kubectl,
            flux=selector.flux,
            docker=docker,
        )

    steps = [fatal("prerequisites", "Checking Prerequisites", _prereqs)]
    steps += orchestrator.steps()
    steps.append(orchestrator.info_step())
    steps += selector.steps(mode)

    log.debug("plan: %s", [s.name for s in steps])
    return steps
