# src/k3dflux/observers/console.py
import typer

from .events import (
    BaseEvent,
    RunStarted,
    RunSummary,
    StepFailed,
    StepStarted,
    StepSucceeded,
    StepWarned,
)


def header(title: str) -> None:
    rule = "=" * 48
    typer.echo("")
    typer.secho(rule, fg="blue")
    typer.secho(f"  {title}", fg="blue")
    typer.secho(rule, fg="blue")
    typer.echo("")


class ConsoleObserver:
    """Human readable progress: one header per step, coloured outcome lines."""

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, RunStarted):
            header(f"k3d Cluster Bootstrap ({event.cluster}, gitops={event.mode})")
        elif isinstance(event, StepStarted):
            header(event.title)
        elif isinstance(event, StepSucceeded):
            typer.secho(f"✓ {event.title} ({event.duration_ms} ms)", fg="green")
        elif isinstance(event, StepWarned):
            typer.secho(f"⚠ {event.name}: {event.error}", fg="yellow")
            if event.hint:
                typer.secho(f"ℹ {event.hint}", fg="blue")
        elif isinstance(event, StepFailed):
            typer.secho(f"✗ {event.name} failed:", fg="red", err=True)
            typer.echo(event.error, err=True)
        elif isinstance(event, RunSummary):
            title = "Bootstrap Aborted" if event.aborted else "Bootstrap Complete"
            header(title)
            color = "red" if event.aborted else ("yellow" if event.warned else "green")
            typer.secho(
                f"OK={event.ok} WARNED={event.warned} FAILED={event.failed}",
                fg=color,
            )
