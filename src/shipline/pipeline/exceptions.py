"""Specialized exceptions raised by the shipline.pipeline module.

Exception hierarchy::

    ShiplineError
        PipelineError (base for all pipeline errors)
            PipelineConfigError (invalid definition, also ValueError)
            UnboundVariableError (environment key never set, also KeyError)
            EnvironmentFrozenError (mutation after run start)
            CredentialNotFoundError (undeclared or out-of-scope id, also KeyError)
            CredentialInUseError (id already held by an open scope)
            StageStateError (illegal stage state transition)
            PipelineAbortedError (failed or cancelled run)
            StepError (step execution error)
                StepFailedError (non-zero exit or raised callable)
                    StepTimeoutError (step exceeded timeout)
                StepImportError (callable import failure)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipline.config.exceptions import ShiplineError

if TYPE_CHECKING:
    from shipline.pipeline.models import PipelineResult


class PipelineError(ShiplineError):
    """Base exception for all pipeline module errors.

    Attributes:
        result: Partial pipeline result when the error interrupted a run.
    """

    result: PipelineResult | None = None


class PipelineConfigError(PipelineError, ValueError):
    """Pipeline definition is invalid.

    Raised when the pipeline, stage or step definition contains
    invalid values, missing required fields, or constraint violations.
    """


class UnboundVariableError(PipelineError, KeyError):
    """An environment key was referenced but never set.

    Attributes:
        key: The missing environment key.
    """

    def __init__(self, key: str) -> None:
        """Initialize UnboundVariableError.

        Args:
            key: The missing environment key.
        """
        super().__init__(f"Unbound environment variable: {key!r}")
        self.key = key

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0])


class EnvironmentFrozenError(PipelineError):
    """The environment store was mutated after the run started."""


class CredentialNotFoundError(PipelineError, KeyError):
    """A credential id is undeclared or not held by the current scope.

    Attributes:
        credential_id: The credential identifier.
    """

    def __init__(self, credential_id: str, reason: str = "not declared") -> None:
        """Initialize CredentialNotFoundError.

        Args:
            credential_id: The credential identifier.
            reason: Why the credential cannot be resolved.
        """
        super().__init__(f"Credential {credential_id!r} {reason}")
        self.credential_id = credential_id

    def __str__(self) -> str:
        return str(self.args[0])


class CredentialInUseError(PipelineError):
    """A credential id is already held by another open scope.

    Attributes:
        credential_id: The credential identifier.
    """

    def __init__(self, credential_id: str) -> None:
        """Initialize CredentialInUseError.

        Args:
            credential_id: The credential identifier.
        """
        super().__init__(f"Credential {credential_id!r} is already held by an open scope")
        self.credential_id = credential_id


class StageStateError(PipelineError):
    """A stage was moved through an illegal state transition."""


class PipelineAbortedError(PipelineError):
    """Pipeline execution stopped before all stages completed.

    Raised by ``PipelineRunner.run`` when a stage fails or the run is
    cancelled. The partial result is available as ``result``.

    Attributes:
        stage_name: Name of the stage that caused the abort.
        reason: Description of why the stage failed.
    """

    def __init__(
        self,
        stage_name: str,
        reason: str,
        result: PipelineResult | None = None,
    ) -> None:
        """Initialize PipelineAbortedError.

        Args:
            stage_name: Name of the stage that caused the abort.
            reason: Description of why the stage failed.
            result: Partial pipeline result.
        """
        super().__init__(f"Pipeline aborted at stage '{stage_name}': {reason}")
        self.stage_name = stage_name
        self.reason = reason
        self.result = result


class StepError(PipelineError):
    """A pipeline step failed during execution.

    Attributes:
        step_name: Name of the step that failed.
        reason: Description of the failure.
    """

    def __init__(self, step_name: str, reason: str) -> None:
        """Initialize StepError.

        Args:
            step_name: Name of the step that failed.
            reason: Description of the failure.
        """
        super().__init__(f"Step '{step_name}' failed: {reason}")
        self.step_name = step_name
        self.reason = reason


class StepFailedError(StepError):
    """A step exited with a non-zero status or raised."""


class StepTimeoutError(StepFailedError):
    """A pipeline step exceeded its timeout.

    Attributes:
        step_name: Name of the step that timed out.
        timeout: The timeout value in seconds.
    """

    def __init__(self, step_name: str, timeout: float) -> None:
        """Initialize StepTimeoutError.

        Args:
            step_name: Name of the step that timed out.
            timeout: The timeout value in seconds.
        """
        super().__init__(step_name, f"exceeded timeout of {timeout}s")
        self.timeout = timeout


class StepImportError(StepError):
    """Failed to import a callable target for a step.

    Attributes:
        step_name: Name of the step with the import failure.
        target: The import target string that failed.
    """

    def __init__(self, step_name: str, target: str) -> None:
        """Initialize StepImportError.

        Args:
            step_name: Name of the step with the import failure.
            target: The import target string (e.g. "module.path:function").
        """
        super().__init__(step_name, f"cannot import '{target}'")
        self.target = target


__all__ = [
    "CredentialInUseError",
    "CredentialNotFoundError",
    "EnvironmentFrozenError",
    "PipelineAbortedError",
    "PipelineConfigError",
    "PipelineError",
    "StageStateError",
    "StepError",
    "StepFailedError",
    "StepImportError",
    "StepTimeoutError",
    "UnboundVariableError",
]
