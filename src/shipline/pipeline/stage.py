"""Stage runner: ordered step execution inside one named stage.

A stage moves through ``pending -> running -> {succeeded, failed,
skipped_best_effort}``. Steps run in declaration order and the first
failing step aborts the rest of the stage, unless that step is itself
marked best-effort (the "remove the old container, ignore if absent"
pattern), in which case the failure is recorded and the stage goes on.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from shipline.pipeline.credentials import REDACTED
from shipline.pipeline.exceptions import PipelineError, StepFailedError
from shipline.pipeline.models import (
    StageConfig,
    StageResult,
    StageStatus,
    StepConfig,
    StepResult,
    StepStatus,
    StepType,
)
from shipline.pipeline.steps.callable import CallableStep
from shipline.pipeline.steps.shell import ShellStep

if TYPE_CHECKING:
    from shipline.pipeline.base import AbstractStep
    from shipline.pipeline.cancel import CancelToken
    from shipline.pipeline.credentials import CredentialVault
    from shipline.pipeline.environment import EnvironmentStore

logger = logging.getLogger(__name__)


def default_executors() -> dict[StepType, AbstractStep]:
    """Return the built-in step type to executor mapping."""
    return {
        StepType.SHELL: ShellStep(),
        StepType.CALLABLE: CallableStep(),
    }


def _with_timeout(config: StepConfig, timeout: float) -> StepConfig:
    """Return ``config`` with the pipeline default timeout when it has none."""
    if config.timeout is not None:
        return config
    return dataclasses.replace(config, timeout=timeout)


def _redact_value(value: Any, vault: CredentialVault) -> Any:
    """Return ``value`` with credential values masked at any depth.

    Strings and bytes are redacted in place of their text, lists, tuples
    and dicts are rebuilt from redacted members, and any other object is
    replaced by its redacted ``repr()``.

    Examples:
        >>> from shipline.pipeline.credentials import CredentialVault, from_value
        >>> vault = CredentialVault({"TOKEN": from_value("s3cr3t")})
        >>> with vault.scope(["TOKEN"]):
        ...     _redact_value({"auth": ("Bearer", "s3cr3t")}, vault)
        {'auth': ('Bearer', '***')}
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return vault.redact(value)
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("utf-8", errors="replace")
        masked = vault.redact(text)
        return value if masked == text else masked.encode("utf-8")
    if isinstance(value, list):
        return [_redact_value(item, vault) for item in value]
    if isinstance(value, tuple):
        return tuple(_redact_value(item, vault) for item in value)
    if isinstance(value, dict):
        return {_redact_value(key, vault): _redact_value(item, vault) for key, item in value.items()}
    return vault.redact(repr(value))


def _redact_result(result: StepResult, vault: CredentialVault) -> None:
    """Mask credential values in captured output while the scope is still open."""
    result.stdout = vault.redact(result.stdout)
    result.stderr = vault.redact(result.stderr)
    if result.error:
        result.error = vault.redact(result.error)
    result.return_value = _redact_value(result.return_value, vault)


class StageRunner:
    """Run the steps of a stage in order.

    Args:
        executors: Step type to executor mapping (defaults to shell and callable).
        default_timeout: Timeout applied to steps without one.
        dry_run: Simulate steps without side effects.
        cancel: Token checked before every step and polled by executors.
    """

    def __init__(
        self,
        executors: Mapping[StepType, AbstractStep] | None = None,
        *,
        default_timeout: float = 300.0,
        dry_run: bool = False,
        cancel: CancelToken | None = None,
    ) -> None:
        self._executors = dict(executors) if executors is not None else default_executors()
        self.default_timeout = default_timeout
        self.dry_run = dry_run
        self.cancel = cancel

    def run(
        self,
        stage: StageConfig,
        env: EnvironmentStore,
        vault: CredentialVault,
        *,
        result: StageResult | None = None,
    ) -> StageResult:
        """Execute every step of ``stage``.

        Args:
            stage: Stage definition.
            env: Frozen environment store.
            vault: Credential vault; each step's credentials are scoped to that step.
            result: Pre-created result to fill in (lets the caller keep it on fatal errors).

        Returns:
            The stage result in a terminal state.

        Raises:
            UnboundVariableError: If a step requires an environment key that is not set.
            CredentialNotFoundError: If a step requires an undeclared credential.
            StepImportError: If a callable step target cannot be imported.
            StepFailedError: If an executor raises instead of returning a result.
        """
        if result is None:
            result = StageResult(name=stage.name)
        result.transition(StageStatus.RUNNING)
        logger.info("Stage '%s' started (%d steps)", stage.name, len(stage.steps))

        start = time.monotonic()
        failure: str | None = None
        try:
            for step in stage.steps:
                if self.cancel is not None and self.cancel.cancelled:
                    failure = f"cancelled before step '{step.name}'"
                    break

                step_result = self._run_step(step, env, vault)
                result.steps.append(step_result)
                logger.info(
                    "Step '%s/%s' -> %s (%.3fs)",
                    stage.name,
                    step_result.name,
                    step_result.status.value,
                    step_result.duration,
                )

                if not step_result.failed:
                    continue
                if step.best_effort and step_result.status != StepStatus.CANCELLED:
                    logger.info(
                        "Step '%s/%s' failure absorbed (best effort): %s",
                        stage.name,
                        step.name,
                        step_result.error or step_result.status.value,
                    )
                    continue
                failure = step_result.error or step_result.status.value
                break
        except Exception as exc:
            result.duration = time.monotonic() - start
            result.error = str(exc) or type(exc).__name__
            result.transition(StageStatus.FAILED)
            logger.error("Stage '%s' aborted: %s", stage.name, exc)
            raise

        result.duration = time.monotonic() - start
        if failure is None:
            result.transition(StageStatus.SUCCEEDED)
        elif stage.best_effort:
            result.error = failure
            result.transition(StageStatus.SKIPPED_BEST_EFFORT)
            logger.warning("Stage '%s' failed but is best effort: %s", stage.name, failure)
        else:
            result.error = failure
            result.transition(StageStatus.FAILED)
            logger.error("Stage '%s' failed: %s", stage.name, failure)
        return result

    def _run_step(
        self,
        step: StepConfig,
        env: EnvironmentStore,
        vault: CredentialVault,
    ) -> StepResult:
        """Check a step's declarations, then execute it inside its credential scope."""
        env.require(step.env)
        vault.check_declared(step.credentials)

        effective = _with_timeout(step, self.default_timeout)
        executor = self._executors[step.type]
        if self.dry_run:
            # Secrets are never resolved for a dry run
            masked = {credential_id: REDACTED for credential_id in step.credentials}
            return executor.execute(effective, env, masked, dry_run=True, cancel=self.cancel)

        with vault.scope(step.credentials) as creds:
            try:
                step_result = executor.execute(
                    effective,
                    env,
                    creds,
                    dry_run=self.dry_run,
                    cancel=self.cancel,
                )
            except PipelineError:
                raise
            except Exception as exc:
                reason = vault.redact(f"{type(exc).__name__}: {exc}")
                raise StepFailedError(step.name, f"executor crashed: {reason}") from None
            _redact_result(step_result, vault)
        return step_result


__all__ = [
    "StageRunner",
    "default_executors",
]
