"""Shared helpers for the shipline CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shipline.pipeline.models import StageStatus, StepStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shipline.pipeline.models import PipelineConfig, PipelineResult

console = Console()
err_console = Console(stderr=True)

#: Exit code of a failed pipeline.
EXIT_FAILED = 1

#: Exit code of an invalid definition or configuration file.
EXIT_CONFIG_ERROR = 2

#: Exit code of a cancelled run (128 + SIGINT).
EXIT_CANCELLED = 130

_STATUS_STYLES = {
    StageStatus.SUCCEEDED.value: "green",
    StageStatus.FAILED.value: "red",
    StageStatus.SKIPPED_BEST_EFFORT.value: "yellow",
    StepStatus.SUCCESS.value: "green",
    StepStatus.FAILED.value: "red",
    StepStatus.TIMEOUT.value: "red",
    StepStatus.CANCELLED.value: "red",
    StepStatus.SKIPPED.value: "dim",
}


def exit_error(message: str, code: int = EXIT_CONFIG_ERROR) -> NoReturn:
    """Print an error message and exit with ``code``."""
    err_console.print(f"[red]Error:[/] {message}")
    raise typer.Exit(code)


def parse_assignments(values: Sequence[str] | None) -> dict[str, str]:
    """Parse ``KEY=VALUE`` command line assignments.

    Examples:
        >>> parse_assignments(["IMAGE_NAME=shop/site", "TAG=a=b"])
        {'IMAGE_NAME': 'shop/site', 'TAG': 'a=b'}
    """
    assignments: dict[str, str] = {}
    for value in values or ():
        key, sep, rest = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {value!r}")
        assignments[key] = rest
    return assignments


def _styled(status: str) -> str:
    style = _STATUS_STYLES.get(status)
    return f"[{style}]{status}[/]" if style else status


def render_result(result: PipelineResult) -> None:
    """Print a table of stage and step results followed by the overall status."""
    table = Table(title=f"Pipeline {result.name}", show_lines=False)
    table.add_column("Stage", style="cyan")
    table.add_column("Step")
    table.add_column("Status", justify="center")
    table.add_column("Duration", justify="right")
    table.add_column("Error", overflow="fold")

    for stage in result.stages:
        table.add_row(stage.name, "", _styled(stage.status.value), f"{stage.duration:.2f}s", escape(stage.error or ""))
        for step in stage.steps:
            label = f"{step.name} (best effort)" if step.best_effort else step.name
            table.add_row("", label, _styled(step.status.value), f"{step.duration:.2f}s", escape(step.error or ""))

    console.print(table)
    suffix = " (cancelled)" if result.cancelled else ""
    console.print(f"Result: {_styled(result.status.value)}{suffix} in {result.duration:.2f}s")


def render_plan(config: PipelineConfig) -> None:
    """Print the stages and steps of a pipeline definition."""
    table = Table(title=f"Pipeline {config.name}", show_lines=False)
    table.add_column("Stage", style="cyan")
    table.add_column("Step")
    table.add_column("Type", justify="center")
    table.add_column("Command / target", overflow="fold")
    table.add_column("Env")
    table.add_column("Credentials")

    for stage in config.stages:
        stage_label = f"{stage.name} (best effort)" if stage.best_effort else stage.name
        for index, step in enumerate(stage.steps):
            step_label = f"{step.name} (best effort)" if step.best_effort else step.name
            table.add_row(
                stage_label if index == 0 else "",
                step_label,
                step.type.value,
                escape(step.command or step.callable or ""),
                ", ".join(step.env),
                ", ".join(step.credentials),
            )

    console.print(table)


__all__ = [
    "EXIT_CANCELLED",
    "EXIT_CONFIG_ERROR",
    "EXIT_FAILED",
    "console",
    "err_console",
    "exit_error",
    "parse_assignments",
    "render_plan",
    "render_result",
]
