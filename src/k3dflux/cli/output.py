# src/k3dflux/cli/output.py
import typer


def info(msg: str) -> None:
    typer.secho(f"ℹ️  {msg}", fg="blue")


def success(msg: str) -> None:
    typer.secho(f"✅ {msg}", fg="green")


def warning(msg: str) -> None:
    typer.secho(f"⚠️  {msg}", fg="yellow")


def error(msg: str) -> None:
    typer.secho(f"❌ {msg}", fg="red", err=True)
