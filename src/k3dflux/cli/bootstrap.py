# src/k3dflux/cli/bootstrap.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml

from k3dflux.cluster.orchestrator import ClusterOrchestrator
from k3dflux.config.loader import load_config
from k3dflux.config.models import BootstrapConfig, GitOpsMode
from k3dflux.deploy.executor import run_steps
from k3dflux.deploy.planner import plan
from k3dflux.errors import K3dfluxError, UsageError
from k3dflux.flux.cli_runner import FluxCliRunner
from k3dflux.gitops.selector import GitOpsModeSelector, parse_mode
from k3dflux.hosts.manager import HostsFileManager
from k3dflux.k3d.cli_runner import DockerCliRunner, K3dCliRunner
from k3dflux.kube.kubectl import KubectlRunner
from k3dflux.logging.log import init_logging
from k3dflux.observers.console import ConsoleObserver
from k3dflux.observers.dispatcher import EventBus
from k3dflux.observers.events import new_ctx
from k3dflux.observers.jsonfile import JsonFileObserver
from k3dflux.observers.logger import LoggerObserver
from k3dflux.utils.execution import ExecutionContext

from . import output


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Create the local k3d cluster and optionally bootstrap Flux", add_completion=False)


def _load(config: Optional[Path]) -> BootstrapConfig:
    try:
        return load_config(config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        output.error(f"Cannot load config {config}: {e}")
        raise typer.Exit(1)


def _orchestrator(cfg: BootstrapConfig, ctx: ExecutionContext) -> ClusterOrchestrator:
    return ClusterOrchestrator(
        cfg.cluster,
        k3d=K3dCliRunner(ctx=ctx),
        kubectl=KubectlRunner(ctx=ctx),
        hosts=HostsFileManager(cfg.cluster.hosts_file, ctx=ctx),
    )


def _next_steps(cfg: BootstrapConfig, mode: GitOpsMode) -> None:
    typer.secho(f"Cluster {cfg.cluster.name} is ready!", fg="green")
    typer.echo("")
    typer.echo("Next steps:")
    if mode is GitOpsMode.NONE:
        typer.echo("  1. Deploy Flux: k3d-bootstrap --admin (or --read-only)")
    typer.echo("  2. Apply NetworkPolicies: kubectl apply -k infra/networkpolicies/")
    typer.echo("  3. Deploy apps: kubectl apply -k apps/app01/")
    typer.echo("")
    typer.echo("Access apps:")
    for entry in cfg.cluster.app_hosts:
        if "*" not in entry.hostname:
            typer.echo(f"  http://{entry.hostname}:80")
            typer.echo(f"  https://{entry.hostname}:443")
    typer.echo("")
    typer.echo("To delete cluster:")
    typer.echo("  k3d-bootstrap destroy")


# ------------------------------------------------------------------------------
# Provision
# ------------------------------------------------------------------------------

@app.callback(invoke_without_command=True)
def provision(
    ctx: typer.Context,
    admin: bool = typer.Option(
        False,
        "--admin",
        "--flux",
        help="flux bootstrap github: write-capable credentials, deploy key, write-back",
    ),
    read_only: bool = typer.Option(
        False,
        "--read-only",
        help="flux install + public GitRepository/Kustomization, no credentials",
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Bootstrap config YAML"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log mutating commands instead of running them"),
    debug: bool = typer.Option(False, "--debug"),
):
    """
    Recreate the cluster from scratch, then set up GitOps for the chosen mode.
    """
    if ctx.invoked_subcommand is not None:
        return

    # mode is fixed before anything touches the cluster
    try:
        mode = parse_mode(admin=admin, read_only=read_only)
    except UsageError as e:
        raise typer.BadParameter(str(e))

    logger, run_id, log_path = init_logging(verbose=debug)
    cfg = _load(config)

    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")

    exec_ctx = ExecutionContext(dry_run=dry_run)
    orchestrator = _orchestrator(cfg, exec_ctx)
    selector = GitOpsModeSelector(
        cfg.gitops,
        flux=FluxCliRunner(ctx=exec_ctx),
        kubectl=orchestrator.kubectl,
    )

    steps = plan(
        cfg,
        mode,
        orchestrator=orchestrator,
        selector=selector,
        docker=DockerCliRunner(ctx=exec_ctx),
    )

    bus = EventBus(
        observers=[
            ConsoleObserver(),
            LoggerObserver(logger),
            JsonFileObserver(log_path.parent / f"{run_id}.jsonl"),
        ]
    )
    report = run_steps(
        steps,
        bus=bus,
        run_ctx=new_ctx(cluster=cfg.cluster.name, mode=mode.value, run_id=run_id),
    )
    logger.info("run finished: %s", report.summary())

    if report.aborted:
        raise typer.Exit(1)

    for w in report.warnings:
        output.warning(f"{w.name} did not complete: {w.error}")
    _next_steps(cfg, mode)


# ------------------------------------------------------------------------------
# Destroy
# ------------------------------------------------------------------------------

@app.command()
def destroy(
    config: Optional[Path] = typer.Option(None, "--config", help="Bootstrap config YAML"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Delete the cluster and remove its hosts file entries."""
    init_logging(command="destroy", verbose=debug)
    cfg = _load(config)
    orchestrator = _orchestrator(cfg, ExecutionContext(dry_run=dry_run))

    try:
        deleted = orchestrator.destroy()
    except K3dfluxError as e:
        output.error(str(e))
        raise typer.Exit(1)

    if deleted:
        output.success(f"Cluster {cfg.cluster.name} deleted")
    else:
        output.warning(f"No cluster named {cfg.cluster.name}")
    output.success(f"Hosts entries tagged {cfg.cluster.hosts_marker!r} removed")


if __name__ == "__main__":
    app()
