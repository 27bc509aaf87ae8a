# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/gitops/selector.py
from __future__ import annotations

import logging
from typing import List, Optional

import typer

from ..config.models import GitOpsMode, GitOpsParams
from ..deploy.executor import RunReport, run_steps
from ..deploy.steps import Step, best_effort, fatal
from ..errors import ConvergenceTimeout, KubectlError, UsageError
from ..flux.cli_runner import FluxCliRunner
from ..kube.kubectl import KubectlRunner
from ..observers.dispatcher import EventBus
from ..observers.events import new_ctx
from .resources import git_source, git_sync

log = logging.getLogger("k3dflux")


def parse_mode(admin: bool = False, read_only: bool = False) -> GitOpsMode:
    """Map the mutually exclusive CLI flags onto the closed mode set."""
    if admin and read_only:
        raise UsageError("--admin and --read-only are mutually exclusive")
    if admin:
        return GitOpsMode.ADMIN
    if read_only:
        return GitOpsMode.READ_ONLY
    return GitOpsMode.NONE


class GitOpsModeSelector:
    """
    Drives Flux setup for a mode.

    - admin: `flux bootstrap github` (controllers, deploy key, write-back).
    - read-only: `flux install` + GitRepository + Kustomization, no credentials.
    Installation steps are fatal; the convergence waits are best-effort.
    """

    def __init__(
        self,
        params: GitOpsParams,
        *,
        flux: Optional[FluxCliRunner] = None,
        kubectl: Optional[KubectlRunner] = None,
    ):
        self.params = params
        self.flux = flux or FluxCliRunner()
        self.kubectl = kubectl or KubectlRunner()

    # -------------------------------------------------------------------------
    # Step actions
    # -------------------------------------------------------------------------
    def bootstrap(self) -> None:
        typer.echo(f"Bootstrapping Flux against {self.params.url} ({self.params.branch}:{self.params.path})")
        self.flux.bootstrap_github(self.params)

    def install(self) -> None:
        self.flux.install(self.params)

    def apply_source(self) -> None:
        self.kubectl.apply_objects([git_source(self.params)])

    def apply_sync(self) -> None:
        self.kubectl.apply_objects([git_sync(self.params)])

    def _wait(self, kind: str, timeout_seconds: int) -> None:
        try:
            self.kubectl.wait_for_condition(
                kind=kind,
                name=self.params.name,
                namespace=self.params.namespace,
                timeout_seconds=timeout_seconds,
            )
        except KubectlError as e:
            raise ConvergenceTimeout(kind, self.params.name, timeout_seconds, e.output) from e

    def wait_source(self) -> None:
        self._wait("gitrepository", self.params.source_timeout_seconds)

    def wait_sync(self) -> None:
        self._wait("kustomization", self.params.sync_timeout_seconds)

    def report_status(self) -> None:
        typer.echo(self.kubectl.get_gitops_objects(self.params.namespace))

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------
    def install_steps(self, mode: GitOpsMode) -> List[Step]:
        if mode is GitOpsMode.NONE:
            return []
        if mode is GitOpsMode.ADMIN:
            return [fatal("flux-bootstrap", "Running Flux Bootstrap (admin)", self.bootstrap)]
        if mode is GitOpsMode.READ_ONLY:
            return [
                fatal("flux-install", "Installing Flux (read-only)", self.install),
                fatal("apply-source", "Applying GitRepository", self.apply_source),
                fatal("apply-sync", "Applying Kustomization", self.apply_sync),
            ]
        raise UsageError(f"Unknown gitops mode: {mode!r}")

    def convergence_steps(self) -> List[Step]:
        ns = self.params.namespace
        return [
            best_effort(
                "wait-source",
                "Waiting for GitRepository Ready",
                self.wait_source,
                hint=f"Check progress with: flux get sources git -n {ns}",
            ),
            best_effort(
                "wait-sync",
                "Waiting for Kustomization Ready",
                self.wait_sync,
                hint=f"Check progress with: flux get kustomizations -n {ns}",
            ),
        ]

    def steps(self, mode: GitOpsMode) -> List[Step]:
        installs = self.install_steps(mode)
        if not installs:
            return []
        return installs + self.convergence_steps() + [
            best_effort(
                "gitops-status",
                "GitOps Status",
                self.report_status,
                hint=f"Inspect manually with: flux get all -n {self.params.namespace}",
            )
        ]

    def apply(self, mode: GitOpsMode, cluster: str = "-", bus: Optional[EventBus] = None) -> RunReport:
        return run_steps(
            self.steps(mode),
            bus=bus,
            run_ctx=new_ctx(cluster=cluster, mode=mode.value),
        )
