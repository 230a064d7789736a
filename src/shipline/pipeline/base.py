"""Abstract base protocol for pipeline step executors.

This module defines the protocol that all step executors must satisfy,
enabling consistent execution across shell and callable step types and
letting callers plug in their own executors (for instance a fake
container runtime in tests).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shipline.pipeline.cancel import CancelToken
    from shipline.pipeline.models import StepConfig, StepResult


@runtime_checkable
class AbstractStep(Protocol):
    """Protocol defining the interface for pipeline step executors.

    A non-zero exit is not an error at this layer: it is reported through
    ``StepResult.status`` and the stage runner decides its significance.

    Examples:
        >>> from shipline.pipeline.steps import ShellStep
        >>> isinstance(ShellStep(), AbstractStep)
        True
    """

    def execute(
        self,
        config: StepConfig,
        env: Mapping[str, str],
        creds: Mapping[str, str],
        *,
        dry_run: bool = False,
        cancel: CancelToken | None = None,
    ) -> StepResult:
        """Execute a pipeline step.

        Args:
            config: Step definition with its effective timeout applied.
            env: Environment store (only keys declared by the step are read).
            creds: Credential view for the step's declared credentials.
            dry_run: If True, simulate execution without side effects.
            cancel: Token polled while the step runs.

        Returns:
            StepResult with status, output, duration, etc.
        """
        ...


__all__ = [
    "AbstractStep",
]
