"""Declarative build-push-deploy pipeline execution.

Pipelines are ordered stages of steps. Stages run strictly in order and
share a frozen environment store; credentials are resolved from a vault
only for the step that declares them and erased right after. A failing
stage halts the run unless it is marked best-effort.

Examples:
    Programmatic pipeline:

    >>> from shipline.pipeline import PipelineConfig, PipelineRunner, StageConfig, StepConfig
    >>> config = PipelineConfig(
    ...     name="demo",
    ...     stages=(
    ...         StageConfig(name="build", steps=(StepConfig(name="image", command="echo build"),)),
    ...     ),
    ... )
    >>> runner = PipelineRunner(config)
    >>> result = runner.execute()  # doctest: +SKIP

    File-driven pipeline:

    >>> runner = PipelineRunner.from_file("shipline.yml")  # doctest: +SKIP
    >>> result = runner.run()  # doctest: +SKIP
"""

from shipline.pipeline.base import AbstractStep
from shipline.pipeline.cancel import CancelToken, cancel_on_signals
from shipline.pipeline.credentials import (
    CredentialVault,
    CredentialView,
    from_env,
    from_file,
    from_value,
)
from shipline.pipeline.environment import EnvironmentStore
from shipline.pipeline.exceptions import (
    CredentialInUseError,
    CredentialNotFoundError,
    EnvironmentFrozenError,
    PipelineAbortedError,
    PipelineConfigError,
    PipelineError,
    StageStateError,
    StepError,
    StepFailedError,
    StepImportError,
    StepTimeoutError,
    UnboundVariableError,
)
from shipline.pipeline.models import (
    PipelineConfig,
    PipelineResult,
    PipelineStatus,
    StageConfig,
    StageResult,
    StageStatus,
    StepConfig,
    StepResult,
    StepStatus,
    StepType,
)
from shipline.pipeline.presets import build_push_deploy, redeploy_stage
from shipline.pipeline.runner import PipelineRunner
from shipline.pipeline.stage import StageRunner
from shipline.pipeline.steps import CallableStep, ShellStep

__all__ = [
    "AbstractStep",
    "CallableStep",
    "CancelToken",
    "CredentialInUseError",
    "CredentialNotFoundError",
    "CredentialVault",
    "CredentialView",
    "EnvironmentFrozenError",
    "EnvironmentStore",
    "PipelineAbortedError",
    "PipelineConfig",
    "PipelineConfigError",
    "PipelineError",
    "PipelineResult",
    "PipelineRunner",
    "PipelineStatus",
    "ShellStep",
    "StageConfig",
    "StageResult",
    "StageRunner",
    "StageStateError",
    "StageStatus",
    "StepConfig",
    "StepError",
    "StepFailedError",
    "StepImportError",
    "StepResult",
    "StepStatus",
    "StepTimeoutError",
    "StepType",
    "UnboundVariableError",
    "build_push_deploy",
    "cancel_on_signals",
    "from_env",
    "from_file",
    "from_value",
    "redeploy_stage",
]
