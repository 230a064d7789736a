"""Typer application entry point for the shipline CLI."""

from __future__ import annotations

from typing import Annotated

import typer

from shipline.cli.commands import pipeline
from shipline.logging import init_logging
from shipline.meta import __app_name__, __version__

app = typer.Typer(
    name=__app_name__,
    help="Run declarative build, push and deploy pipelines.",
    no_args_is_help=True,
    add_completion=False,
)

app.command("run")(pipeline.run)
app.command("validate")(pipeline.validate)
app.command("show")(pipeline.show)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{__app_name__} {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_preset: Annotated[
        str,
        typer.Option("--log-preset", help="Logging preset: dev, debug or prod."),
    ] = "dev",
    log_file: Annotated[
        str | None,
        typer.Option("--log-file", help="Also write logs to this file."),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit."),
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    overrides = {"file": {"path": log_file}} if log_file else None
    try:
        init_logging(log_preset, overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-preset") from exc


def main() -> None:
    """Console script entry point."""
    app()


__all__ = [
    "app",
    "main",
]
