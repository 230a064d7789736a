"""Data models for the shipline.pipeline module.

This module defines the core data structures used by the pipeline module:

- StepType: Enum for step execution mode (shell, callable)
- StepStatus: Enum for step outcome (success, failed, timeout, cancelled, skipped)
- StageStatus: Enum for the per-stage state machine
- PipelineStatus: Enum for the overall pipeline outcome
- StepConfig: Frozen definition of a single step
- StageConfig: Frozen definition of a named group of steps
- PipelineConfig: Frozen definition of an entire pipeline
- StepResult: Mutable outcome of a single step execution
- StageResult: Mutable outcome of a stage, guarding its state transitions
- PipelineResult: Mutable aggregate outcome of a pipeline execution
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from shipline.pipeline.exceptions import (
    PipelineConfigError,
    StageStateError,
    StepFailedError,
    StepTimeoutError,
)
from shipline.pipeline.validators import (
    MAX_STAGE_STEPS,
    MAX_STEP_ARGS,
    validate_callable_target,
    validate_command,
    validate_key,
    validate_name,
    validate_pipeline_config,
    validate_placeholders,
    validate_value,
)


class StepType(str, Enum):
    """Execution mode for a pipeline step.

    Attributes:
        SHELL: Render a command template and run it through the shell.
        CALLABLE: Import and call a Python function directly.
    """

    SHELL = "shell"
    CALLABLE = "callable"


class StepStatus(str, Enum):
    """Result status of a pipeline step.

    Attributes:
        SUCCESS: Step completed successfully (exit code 0).
        FAILED: Step failed (non-zero exit code or exception).
        TIMEOUT: Step exceeded its timeout limit and was killed.
        CANCELLED: Step was killed by a cancellation request.
        SKIPPED: Step was not executed (dry run).
    """

    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


class StageStatus(str, Enum):
    """State of a stage.

    ``PENDING -> RUNNING -> {SUCCEEDED, FAILED, SKIPPED_BEST_EFFORT}``.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED_BEST_EFFORT = "skipped_best_effort"


class PipelineStatus(str, Enum):
    """Overall outcome of a pipeline run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


#: Step statuses that count as a failure.
FAILURE_STATUSES = frozenset({StepStatus.FAILED, StepStatus.TIMEOUT, StepStatus.CANCELLED})

#: Stage statuses that end the state machine.
TERMINAL_STAGE_STATUSES = frozenset({StageStatus.SUCCEEDED, StageStatus.FAILED, StageStatus.SKIPPED_BEST_EFFORT})

_STAGE_TRANSITIONS: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset({StageStatus.RUNNING}),
    StageStatus.RUNNING: TERMINAL_STAGE_STATUSES,
}


@dataclass(frozen=True, slots=True)
class StepConfig:
    """Definition of a single pipeline step.

    Command and argument templates reference environment keys and
    credential ids as ``${NAME}``; every placeholder must be declared in
    ``env`` or ``credentials``.

    Attributes:
        name: Step name, unique within its stage.
        type: Execution mode (shell, callable).
        command: Shell command template (required for shell type).
        callable: Import target ``module.path:function`` (required for callable type).
        args: Argument templates passed to the step.
        env: Environment keys the step requires.
        credentials: Credential ids the step requires.
        working_dir: Working directory for the step.
        timeout: Step timeout in seconds (None uses pipeline default).
        best_effort: Record a failure without failing the stage.

    Examples:
        >>> config = StepConfig(
        ...     name="image",
        ...     type=StepType.SHELL,
        ...     command="docker build -t ${IMAGE_NAME} .",
        ...     env=("IMAGE_NAME",),
        ... )
        >>> config.name
        'image'
    """

    name: str
    type: StepType = StepType.SHELL
    command: str | None = None
    callable: str | None = None
    args: tuple[str, ...] = ()
    env: tuple[str, ...] = ()
    credentials: tuple[str, ...] = ()
    working_dir: str | None = None
    timeout: float | None = None
    best_effort: bool = False

    def __post_init__(self) -> None:
        """Validate step configuration values.

        Raises:
            PipelineConfigError: If any configuration value is invalid.
        """
        validate_name(self.name, "Step")

        if self.type == StepType.SHELL:
            if not self.command:
                raise PipelineConfigError(f"Step '{self.name}': shell step requires a 'command'")
            validate_command(self.command)
        elif self.type == StepType.CALLABLE:
            if not self.callable:
                raise PipelineConfigError(f"Step '{self.name}': callable step requires a 'callable' target")
            validate_callable_target(self.callable)

        if len(self.args) > MAX_STEP_ARGS:
            raise PipelineConfigError(f"Step '{self.name}': too many arguments (max {MAX_STEP_ARGS})")

        for key in self.env:
            validate_key(key)
        for credential_id in self.credentials:
            validate_key(credential_id, "Credential id")

        validate_placeholders(self.name, self.templates, self.env, self.credentials)

        if self.timeout is not None and self.timeout <= 0:
            raise PipelineConfigError(f"Step '{self.name}': timeout must be positive, got {self.timeout}")

    @property
    def templates(self) -> tuple[str, ...]:
        """All templates rendered for this step (command first, then args)."""
        return ((self.command,) if self.command else ()) + self.args


@dataclass(frozen=True, slots=True)
class StageConfig:
    """Definition of a named, ordered group of steps.

    Attributes:
        name: Stage name, unique within the pipeline.
        steps: Ordered tuple of step definitions.
        best_effort: A failure inside the stage does not abort the pipeline.

    Examples:
        >>> stage = StageConfig(
        ...     name="push",
        ...     steps=(StepConfig(name="push", command="docker push ${IMAGE}", env=("IMAGE",)),),
        ... )
        >>> len(stage.steps)
        1
    """

    name: str
    steps: tuple[StepConfig, ...]
    best_effort: bool = False

    def __post_init__(self) -> None:
        """Validate stage configuration values.

        Raises:
            PipelineConfigError: If configuration is invalid.
        """
        validate_name(self.name, "Stage")

        if not self.steps:
            raise PipelineConfigError(f"Stage '{self.name}' must have at least one step")
        if len(self.steps) > MAX_STAGE_STEPS:
            raise PipelineConfigError(f"Stage '{self.name}': too many steps (max {MAX_STAGE_STEPS})")

        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise PipelineConfigError(f"Stage '{self.name}': duplicate step name {step.name!r}")
            seen.add(step.name)


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Definition of a complete pipeline.

    Attributes:
        name: Pipeline name.
        stages: Ordered tuple of stage definitions.
        environment: Initial environment bindings, stored as a read-only
            copy and left out of the hash.
        default_timeout: Default timeout for steps without explicit timeout.

    Examples:
        >>> config = PipelineConfig(
        ...     name="ecommerce",
        ...     stages=(
        ...         StageConfig(name="build", steps=(StepConfig(name="image", command="make image"),)),
        ...         StageConfig(name="test", steps=(StepConfig(name="unit", command="make test"),)),
        ...     ),
        ... )
        >>> len(config.stages)
        2
    """

    name: str
    stages: tuple[StageConfig, ...]
    environment: Mapping[str, str] = field(default_factory=dict, hash=False)
    default_timeout: float = 300.0

    def __post_init__(self) -> None:
        """Validate pipeline configuration values.

        Raises:
            PipelineConfigError: If configuration is invalid.
        """
        validate_pipeline_config(stage_count=len(self.stages))

        if self.default_timeout <= 0:
            raise PipelineConfigError(f"Pipeline default_timeout must be positive, got {self.default_timeout}")

        for key, value in self.environment.items():
            validate_key(key)
            validate_value(key, value)
        object.__setattr__(self, "environment", MappingProxyType(dict(self.environment)))

        # Check for duplicate stage names
        seen: set[str] = set()
        for stage in self.stages:
            if stage.name in seen:
                raise PipelineConfigError(f"Duplicate stage name: {stage.name!r}")
            seen.add(stage.name)

    def stage(self, name: str) -> StageConfig:
        """Return the stage definition with the given name.

        Raises:
            KeyError: If no stage has that name.
        """
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)


@dataclass(slots=True)
class StepResult:
    """Outcome of a single pipeline step execution.

    Captured text (``stdout``, ``stderr``, ``error``) is redacted of any
    credential value before the result leaves the credential scope.

    Attributes:
        name: Step name.
        status: Execution result status.
        stdout: Standard output captured from the step.
        stderr: Standard error captured from the step.
        return_code: Process exit code (shell steps).
        return_value: Return value (callable steps).
        duration: Execution duration in seconds.
        error: Error message if the step failed.
        best_effort: Whether a failure of this step was absorbed.
        timeout: Timeout applied to the step, in seconds.

    Examples:
        >>> result = StepResult(name="image", status=StepStatus.SUCCESS)
        >>> result.status
        <StepStatus.SUCCESS: 'success'>
    """

    name: str
    status: StepStatus
    stdout: str = ""
    stderr: str = ""
    return_code: int | None = None
    return_value: object = None
    duration: float = 0.0
    error: str | None = None
    best_effort: bool = False
    timeout: float | None = None

    @property
    def failed(self) -> bool:
        """Whether the step failed, timed out or was cancelled."""
        return self.status in FAILURE_STATUSES

    def raise_for_status(self) -> None:
        """Raise the typed failure for a failed step.

        Raises:
            StepTimeoutError: If the step timed out.
            StepFailedError: If the step failed or was cancelled.
        """
        if self.status == StepStatus.TIMEOUT:
            raise StepTimeoutError(self.name, self.timeout or 0.0)
        if self.failed:
            raise StepFailedError(self.name, self.error or self.status.value)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable view of the result."""
        return {
            "name": self.name,
            "status": self.status.value,
            "return_code": self.return_code,
            "duration": round(self.duration, 3),
            "error": self.error,
            "best_effort": self.best_effort,
        }


@dataclass(slots=True)
class StageResult:
    """Outcome of a stage execution.

    Attributes:
        name: Stage name.
        status: Current state of the stage.
        steps: Ordered list of step results.
        duration: Stage execution duration in seconds.
        error: Error message of the step that failed the stage.
    """

    name: str
    status: StageStatus = StageStatus.PENDING
    steps: list[StepResult] = field(default_factory=list)
    duration: float = 0.0
    error: str | None = None

    def transition(self, status: StageStatus) -> None:
        """Move the stage to a new state.

        Args:
            status: Target state.

        Raises:
            StageStateError: If the transition is not allowed.
        """
        allowed = _STAGE_TRANSITIONS.get(self.status, frozenset())
        if status not in allowed:
            raise StageStateError(
                f"Stage '{self.name}': illegal transition {self.status.value} -> {status.value}"
            )
        self.status = status

    @property
    def terminal(self) -> bool:
        """Whether the stage reached a final state."""
        return self.status in TERMINAL_STAGE_STATUSES

    @property
    def failed_steps(self) -> list[StepResult]:
        """Steps that failed, including best-effort ones."""
        return [step for step in self.steps if step.failed]

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable view of the result."""
        return {
            "name": self.name,
            "status": self.status.value,
            "duration": round(self.duration, 3),
            "error": self.error,
            "steps": [step.to_dict() for step in self.steps],
        }


@dataclass(slots=True)
class PipelineResult:
    """Aggregate outcome of a pipeline execution.

    Only stages that started appear in ``stages``; stages after a failed
    stage are absent.

    Attributes:
        name: Pipeline name.
        stages: Ordered list of stage results.
        duration: Total pipeline execution duration in seconds.
        cancelled: Whether the run was stopped by a cancellation request.

    Examples:
        >>> result = PipelineResult(name="ecommerce")
        >>> result.status
        <PipelineStatus.SUCCEEDED: 'succeeded'>
    """

    name: str
    stages: list[StageResult] = field(default_factory=list)
    duration: float = 0.0
    cancelled: bool = False

    @property
    def status(self) -> PipelineStatus:
        """Overall status: failed if cancelled or any stage failed."""
        if self.cancelled or any(stage.status == StageStatus.FAILED for stage in self.stages):
            return PipelineStatus.FAILED
        return PipelineStatus.SUCCEEDED

    @property
    def success(self) -> bool:
        """Whether the pipeline succeeded."""
        return self.status == PipelineStatus.SUCCEEDED

    @property
    def executed_stages(self) -> list[str]:
        """Names of every stage that started, in order."""
        return [stage.name for stage in self.stages]

    @property
    def failed_stages(self) -> list[StageResult]:
        """Stages that ended in the FAILED state."""
        return [stage for stage in self.stages if stage.status == StageStatus.FAILED]

    def stage(self, name: str) -> StageResult:
        """Return the result of the stage with the given name.

        Raises:
            KeyError: If the stage did not run.
        """
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable report of the run."""
        return {
            "name": self.name,
            "status": self.status.value,
            "cancelled": self.cancelled,
            "duration": round(self.duration, 3),
            "stages": [stage.to_dict() for stage in self.stages],
        }


__all__ = [
    "FAILURE_STATUSES",
    "TERMINAL_STAGE_STATUSES",
    "PipelineConfig",
    "PipelineResult",
    "PipelineStatus",
    "StageConfig",
    "StageResult",
    "StageStatus",
    "StepConfig",
    "StepResult",
    "StepStatus",
    "StepType",
]
