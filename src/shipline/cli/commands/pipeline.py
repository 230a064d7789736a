"""Pipeline commands: run, validate and show."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer

from shipline.cli.common import (
    EXIT_CANCELLED,
    EXIT_CONFIG_ERROR,
    EXIT_FAILED,
    console,
    exit_error,
    parse_assignments,
    render_plan,
    render_result,
)
from shipline.config.exceptions import ConfigError
from shipline.pipeline import (
    CancelToken,
    PipelineAbortedError,
    PipelineError,
    PipelineRunner,
    StepFailedError,
    cancel_on_signals,
)

FILE_ARGUMENT = typer.Argument(
    help="Pipeline definition file (defaults to $SHIPLINE_CONFIG or ./shipline.yml).",
    show_default=False,
)
NAME_OPTION = typer.Option("--name", "-n", help="Pipeline to select from a 'pipelines:' mapping.")


def _load_runner(path: Path | None, name: str | None, cancel: CancelToken | None = None) -> PipelineRunner:
    try:
        return PipelineRunner.from_file(path, name, cancel=cancel)
    except (ConfigError, PipelineError) as exc:
        exit_error(str(exc), EXIT_CONFIG_ERROR)


def run(
    path: Annotated[Path | None, FILE_ARGUMENT] = None,
    name: Annotated[str | None, NAME_OPTION] = None,
    assignments: Annotated[
        list[str] | None,
        typer.Option("--set", "-s", help="Override an environment binding (KEY=VALUE), repeatable."),
    ] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Render steps without executing them.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON.")] = False,
) -> None:
    """Run a pipeline and report every stage that started."""
    overrides = parse_assignments(assignments)
    token = CancelToken()
    runner = _load_runner(path, name, token)

    try:
        with cancel_on_signals(token):
            result = runner.execute(overrides, dry_run=dry_run)
    except PipelineError as exc:
        if exc.result is not None and not as_json:
            render_result(exc.result)
        # A crashed step is a failed run, not a bad definition
        crashed = isinstance(exc, (StepFailedError, PipelineAbortedError))
        exit_error(str(exc), EXIT_FAILED if crashed else EXIT_CONFIG_ERROR)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        render_result(result)

    if result.cancelled:
        raise typer.Exit(EXIT_CANCELLED)
    if not result.success:
        raise typer.Exit(EXIT_FAILED)


def validate(
    path: Annotated[Path | None, FILE_ARGUMENT] = None,
    name: Annotated[str | None, NAME_OPTION] = None,
) -> None:
    """Parse and validate a pipeline definition without running it."""
    runner = _load_runner(path, name)
    config = runner.config
    steps = sum(len(stage.steps) for stage in config.stages)
    console.print(
        f"[green]OK[/] pipeline '{config.name}': {len(config.stages)} stages, {steps} steps, "
        f"{len(runner.vault.declared)} credentials"
    )


def show(
    path: Annotated[Path | None, FILE_ARGUMENT] = None,
    name: Annotated[str | None, NAME_OPTION] = None,
) -> None:
    """Print the stages and steps of a pipeline definition."""
    runner = _load_runner(path, name)
    render_plan(runner.config)


__all__ = [
    "run",
    "show",
    "validate",
]
