# src/k3dflux/cli/forward.py
from __future__ import annotations

from typing import List, Optional

import typer
from pydantic import ValidationError

from k3dflux.config.models import ForwardSettings
from k3dflux.errors import PreconditionError, SessionStartError, UsageError
from k3dflux.forward.manager import PortForwardManager, ProbeOutcome, TunnelSession
from k3dflux.forward.process_table import TunnelProcess
from k3dflux.logging.log import init_logging

from . import output

app = typer.Typer(
    help="Manage kubectl port-forward to the gateway service in the local cluster",
    add_completion=False,
)


def _manager(yes: bool = False) -> PortForwardManager:
    def confirm(port: int, pids: List[int]) -> bool:
        output.error(f"Port {port} is already in use (PID: {', '.join(map(str, pids)) or 'unknown'})")
        if yes:
            return True
        return typer.confirm("Kill process and continue?", default=False)

    try:
        settings = ForwardSettings.from_env()
    except ValidationError as e:
        output.error(f"Invalid GATEWAY_* environment setting:\n{e}")
        raise typer.Exit(1)
    return PortForwardManager(settings, confirm=confirm)


def _started(session: TunnelSession) -> None:
    output.success("Port-forward started successfully!")
    output.info(f"PID: {session.pid}")
    output.info(f"URL: {session.url}")
    output.info(f"Logs: {session.log_path}")
    typer.echo("")
    output.info(f"Test with: curl {session.url}/get")
    output.info(f"Browser: gateway-forward browser {session.port}")
    output.info("Stop with: gateway-forward stop")


def _start(mgr: PortForwardManager, port: Optional[int], restart: bool = False) -> None:
    port = port or mgr.settings.default_port
    output.info(f"{'Restarting' if restart else 'Starting'} port-forward on port {port}...")
    try:
        session = mgr.restart(port) if restart else mgr.start(port)
    except PreconditionError as e:
        output.error(str(e))
        raise typer.Exit(1)
    except SessionStartError as e:
        output.error("Failed to start port-forward. Check logs:")
        typer.echo(e.log_tail)
        raise typer.Exit(1)
    _started(session)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-v", "--verbose", help="Verbose output"),
):
    # bare `gateway-forward` behaves like `gateway-forward help`
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        return
    init_logging(command="forward", verbose=debug)


def _scan(mgr: PortForwardManager) -> List[TunnelProcess]:
    try:
        return mgr.status()
    except PreconditionError as e:
        output.error(str(e))
        raise typer.Exit(1)


@app.command()
def start(
    port: Optional[int] = typer.Argument(None, help="Local port (default: $GATEWAY_DEFAULT_PORT or 8080)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Kill whatever holds the port without asking"),
):
    """Start port-forward."""
    _start(_manager(yes), port)


@app.command()
def stop():
    """Stop all port-forwards."""
    output.info("Stopping all port-forwards...")
    try:
        stopped = _manager().stop()
    except PreconditionError as e:
        output.error(str(e))
        raise typer.Exit(1)
    if not stopped:
        output.warning("No active port-forwards found")
        return
    for pid in stopped:
        output.success(f"Stopped port-forward (PID: {pid})")
    output.success(f"Stopped {len(stopped)} port-forward(s)")


@app.command()
def status():
    """Show port-forward status."""
    mgr = _manager()
    output.info("Checking port-forward status...")
    typer.echo("")

    tunnels = _scan(mgr)
    if not tunnels:
        output.warning("No active port-forwards found")
        output.info("Start one with: gateway-forward start")
        return

    for t in tunnels:
        port = t.port if t.port is not None else "N/A"
        output.success("Active port-forward found")
        output.info(f"  PID: {t.pid}")
        output.info(f"  Port: {port}:{mgr.settings.target_port}")
        output.info(f"  URL: {t.url or 'N/A'}")
        typer.echo("")


@app.command()
def restart(
    port: Optional[int] = typer.Argument(None),
    yes: bool = typer.Option(False, "--yes", "-y"),
):
    """Restart port-forward."""
    _start(_manager(yes), port, restart=True)


@app.command()
def test(port: Optional[int] = typer.Argument(None)):
    """Test gateway connection."""
    mgr = _manager()
    port = port or mgr.settings.default_port
    output.info(f"Testing gateway connection on port {port}...")
    typer.echo("")

    result = mgr.test(port)
    if result.outcome is ProbeOutcome.CANNOT_CONNECT:
        output.error(f"Cannot connect to localhost:{port}")
        output.info("Make sure port-forward is running:")
        output.info(f"  gateway-forward start {port}")
        raise typer.Exit(1)

    output.success("Connection successful!")
    typer.echo("")
    output.info("Testing HTTP endpoint /get...")

    if result.outcome in (ProbeOutcome.REQUEST_FAILED, ProbeOutcome.EMPTY_RESPONSE):
        output.error("No response from gateway")
        if result.error:
            output.info(f"Details: {result.error}")
        raise typer.Exit(1)

    output.success("Response received:")
    typer.echo("")
    typer.echo(result.body)


@app.command()
def logs(
    port: Optional[int] = typer.Argument(None),
    lines: int = typer.Option(20, "--lines", "-n"),
):
    """Show port-forward logs."""
    mgr = _manager()
    port = port or mgr.settings.default_port
    tail = mgr.logs(port, lines=lines)
    if tail is None:
        output.warning(f"No logs found for port {port}")
        output.info(f"Log file: {mgr.settings.log_path(port)}")
        return

    output.info(f"Port-forward logs for port {port}:")
    typer.echo("")
    typer.echo("".join(tail), nl=False)


@app.command()
def multiple(ports: Optional[List[int]] = typer.Argument(None, help="Ports, e.g. 8080 8081 8082")):
    """Start multiple port-forwards."""
    mgr = _manager()
    if ports:
        output.info(f"Starting port-forwards on ports: {' '.join(map(str, ports))}")
        typer.echo("")

    try:
        report = mgr.multiple(ports or [])
    except UsageError as e:
        output.error(str(e))
        output.info("Usage: gateway-forward multiple 8080 8081 8082")
        raise typer.Exit(1)
    except PreconditionError as e:
        output.error(str(e))
        raise typer.Exit(1)

    for port in report.skipped:
        output.warning(f"Port {port} already in use, skipped")
    for port in report.failed:
        output.warning(f"Port-forward on {port} exited on startup, see: gateway-forward logs {port}")

    typer.echo("")
    output.success(f"Started {len(report.started)} port-forward(s)")
    if report.started:
        typer.echo("")
        output.info("Access via:")
        for session in report.started:
            output.info(f"  {session.url}")

    typer.echo("")
    output.info("View status: gateway-forward status")
    output.info("Stop all: gateway-forward stop")


@app.command()
def browser(port: Optional[int] = typer.Argument(None)):
    """Open gateway in browser."""
    mgr = _manager()
    port = port or mgr.settings.default_port
    url = f"http://localhost:{port}"
    output.info(f"Opening {url} in browser...")
    if not mgr.browser(port):
        output.warning("Cannot open browser automatically")
        output.info(f"Open manually: {url}")


@app.command("help")
def help_(ctx: typer.Context):
    """Show this help message."""
    typer.echo(ctx.parent.get_help())


if __name__ == "__main__":
    app()
