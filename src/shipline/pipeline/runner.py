"""Pipeline engine: ordered stage execution.

Provides the ``PipelineRunner`` class that folds the stages of a
pipeline in declaration order, owns the environment store for the
lifetime of one run, and decides the overall outcome. Pipelines can be
built programmatically or loaded from a YAML file.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from shipline.config import load_config
from shipline.logging import redact_secrets
from shipline.pipeline.cancel import CancelToken
from shipline.pipeline.credentials import CredentialVault
from shipline.pipeline.environment import EnvironmentStore
from shipline.pipeline.exceptions import (
    PipelineAbortedError,
    PipelineConfigError,
    PipelineError,
)
from shipline.pipeline.models import (
    PipelineConfig,
    PipelineResult,
    StageConfig,
    StageResult,
    StageStatus,
    StepConfig,
    StepType,
)
from shipline.pipeline.presets import redeploy_stage
from shipline.pipeline.stage import StageRunner

if TYPE_CHECKING:
    from shipline.pipeline.base import AbstractStep

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Execute a pipeline of sequential stages.

    A failed stage halts the run: later stages never start and are absent
    from the result. Best-effort stages absorb their failure.

    Args:
        config: Pipeline definition.
        vault: Credential vault (an empty one when omitted).
        executors: Step type to executor mapping override.
        cancel: Cancellation token shared with the caller.

    Examples:
        Build a pipeline programmatically:

        >>> from shipline.pipeline.models import PipelineConfig, StageConfig, StepConfig
        >>> config = PipelineConfig(
        ...     name="demo",
        ...     stages=(StageConfig(name="greet", steps=(StepConfig(name="echo", command="echo hello"),)),),
        ... )
        >>> runner = PipelineRunner(config)
        >>> result = runner.execute()  # doctest: +SKIP

        Load from a YAML file:

        >>> runner = PipelineRunner.from_file("shipline.yml")  # doctest: +SKIP
        >>> result = runner.run()  # doctest: +SKIP
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        vault: CredentialVault | None = None,
        executors: Mapping[StepType, AbstractStep] | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        """Initialize PipelineRunner.

        Args:
            config: Pipeline definition.
            vault: Credential vault.
            executors: Step type to executor mapping override.
            cancel: Cancellation token shared by every run. Without one the
                runner creates a fresh token at the start of each run.
        """
        self._config = config
        self._vault = vault if vault is not None else CredentialVault()
        self._executors = executors
        self._owns_cancel = cancel is None
        self._cancel = cancel if cancel is not None else CancelToken()

    @property
    def config(self) -> PipelineConfig:
        """Return the pipeline definition."""
        return self._config

    @property
    def vault(self) -> CredentialVault:
        """Return the credential vault."""
        return self._vault

    @property
    def cancel_token(self) -> CancelToken:
        """Return the cancellation token of the current or latest run."""
        return self._cancel

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        **kwargs: Any,
    ) -> PipelineRunner:
        """Create a PipelineRunner from a parsed pipeline definition.

        Args:
            data: Mapping with ``name``, ``stages`` and optionally
                ``environment``, ``credentials`` and ``default_timeout``.
            **kwargs: Forwarded to the constructor (``executors``, ``cancel``).

        Returns:
            Configured PipelineRunner instance.

        Raises:
            PipelineConfigError: If the definition is invalid.
        """
        config = parse_pipeline_config(data)
        vault = CredentialVault.from_mapping(_as_mapping(data.get("credentials"), "credentials"))
        return cls(config, vault=vault, **kwargs)

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str] | None = None,
        name: str | None = None,
        **kwargs: Any,
    ) -> PipelineRunner:
        """Create a PipelineRunner from a YAML file.

        The file holds either a single ``pipeline:`` section or a
        ``pipelines:`` mapping from which ``name`` is selected.

        Args:
            path: File path (see ``shipline.config.load_config`` for lookup order).
            name: Pipeline to select from a ``pipelines:`` mapping.
            **kwargs: Forwarded to the constructor.

        Returns:
            Configured PipelineRunner instance.

        Raises:
            ConfigError: If the file cannot be loaded.
            PipelineConfigError: If the pipeline is not found or invalid.
        """
        config = load_config(path)
        return cls.from_mapping(select_pipeline(config.to_dict(), name), **kwargs)

    def execute(
        self,
        overrides: Mapping[str, str] | None = None,
        *,
        dry_run: bool = False,
    ) -> PipelineResult:
        """Execute the pipeline and return its result.

        A fresh environment store is built from the definition plus
        ``overrides`` for every call and frozen before the first stage.

        Args:
            overrides: Environment bindings layered over the definition's.
            dry_run: If True, simulate steps without side effects.

        Returns:
            PipelineResult listing every stage that started.

        Raises:
            UnboundVariableError: If a step requires an environment key that is not set.
            CredentialNotFoundError: If a step requires an unknown credential.
            StepImportError: If a callable step target cannot be imported.
            PipelineAbortedError: If a stage raised an unexpected error.
        """
        if self._owns_cancel:
            self._cancel = CancelToken()
        pipeline_result = PipelineResult(name=self._config.name)
        env = EnvironmentStore({**self._config.environment, **(overrides or {})})
        env.freeze()
        stage_runner = StageRunner(
            self._executors,
            default_timeout=self._config.default_timeout,
            dry_run=dry_run,
            cancel=self._cancel,
        )
        start = time.monotonic()

        logger.info(
            "Pipeline '%s' started (%d stages%s)",
            self._config.name,
            len(self._config.stages),
            ", dry_run=True" if dry_run else "",
        )

        try:
            with redact_secrets(self._vault.redact):
                for stage in self._config.stages:
                    if self._cancel.cancelled:
                        logger.warning("Pipeline '%s' cancelled before stage '%s'", self._config.name, stage.name)
                        break
                    stage_result = StageResult(name=stage.name)
                    pipeline_result.stages.append(stage_result)
                    stage_runner.run(stage, env, self._vault, result=stage_result)
                    logger.info(
                        "Stage '%s' -> %s (%.3fs)",
                        stage_result.name,
                        stage_result.status.value,
                        stage_result.duration,
                    )
                    if stage_result.status == StageStatus.FAILED:
                        break
        except PipelineError as exc:
            pipeline_result.duration = time.monotonic() - start
            exc.result = pipeline_result
            logger.error("Pipeline '%s' aborted: %s", self._config.name, exc)
            raise
        except Exception as exc:
            pipeline_result.duration = time.monotonic() - start
            stage_name = pipeline_result.stages[-1].name if pipeline_result.stages else "(none)"
            logger.error("Pipeline '%s' aborted: %s", self._config.name, exc)
            raise PipelineAbortedError(stage_name, f"{type(exc).__name__}: {exc}", pipeline_result) from exc
        finally:
            pipeline_result.cancelled = self._cancel.cancelled

        pipeline_result.duration = time.monotonic() - start
        logger.info(
            "Pipeline '%s' %s in %.3fs",
            self._config.name,
            pipeline_result.status.value,
            pipeline_result.duration,
        )
        return pipeline_result

    def run(
        self,
        overrides: Mapping[str, str] | None = None,
        *,
        dry_run: bool = False,
    ) -> PipelineResult:
        """Execute the pipeline, raising when it does not succeed.

        Args:
            overrides: Environment bindings layered over the definition's.
            dry_run: If True, simulate steps without side effects.

        Returns:
            PipelineResult of a successful run.

        Raises:
            PipelineAbortedError: If a stage failed or the run was cancelled.
        """
        result = self.execute(overrides, dry_run=dry_run)
        if result.success:
            return result

        failed = result.failed_stages
        if failed:
            raise PipelineAbortedError(failed[0].name, failed[0].error or "stage failed", result)
        last = result.executed_stages[-1] if result.stages else "(none)"
        raise PipelineAbortedError(last, self._cancel.reason or "cancelled", result)


# ============================================================================
# Config helpers
# ============================================================================


def _as_mapping(value: Any, label: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise PipelineConfigError(f"'{label}' must be a mapping, got {type(value).__name__}")
    return value


def _as_str_tuple(value: Any, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise PipelineConfigError(f"{label} must be a list, got {type(value).__name__}")
    return tuple(str(item) for item in value)


def _as_timeout(value: Any, label: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise PipelineConfigError(f"{label}: invalid timeout {value!r}") from None


def select_pipeline(data: Mapping[str, Any], name: str | None = None) -> Mapping[str, Any]:
    """Pick a pipeline definition out of a loaded configuration file.

    Args:
        data: Whole configuration mapping.
        name: Pipeline name for files with a ``pipelines:`` mapping.

    Returns:
        Pipeline definition mapping, with ``name`` filled in.

    Raises:
        PipelineConfigError: If the pipeline is not found.
    """
    pipelines = _as_mapping(data.get("pipelines"), "pipelines")
    if pipelines:
        if name is None and len(pipelines) == 1:
            name = next(iter(pipelines))
        if name not in pipelines:
            available = ", ".join(sorted(pipelines)) or "(none)"
            raise PipelineConfigError(f"Pipeline '{name}' not found in config. Available: {available}")
        return {"name": name, **_as_mapping(pipelines[name], f"pipelines.{name}")}

    section = _as_mapping(data.get("pipeline"), "pipeline")
    if not section:
        raise PipelineConfigError("Configuration has no 'pipeline' or 'pipelines' section")
    if name is not None and section.get("name", name) != name:
        raise PipelineConfigError(f"Pipeline '{name}' not found in config. Available: {section.get('name')}")
    return section


def parse_pipeline_config(data: Mapping[str, Any]) -> PipelineConfig:
    """Parse a raw pipeline definition into a PipelineConfig.

    Args:
        data: Raw definition mapping.

    Returns:
        Validated PipelineConfig.

    Raises:
        PipelineConfigError: If the definition is invalid.
    """
    name = data.get("name")
    if not name:
        raise PipelineConfigError("Pipeline definition missing 'name'")

    raw_stages = data.get("stages", [])
    if not isinstance(raw_stages, list):
        raise PipelineConfigError(f"Pipeline '{name}': 'stages' must be a list")

    stages: list[StageConfig] = []
    for index, raw_stage in enumerate(raw_stages):
        if not isinstance(raw_stage, Mapping):
            raise PipelineConfigError(f"Pipeline '{name}': stage {index} must be a mapping")
        stages.append(_parse_stage_config(name, index, raw_stage))

    environment: dict[str, str] = {}
    for key, value in _as_mapping(data.get("environment"), "environment").items():
        if value is None:
            raise PipelineConfigError(f"Pipeline '{name}': environment value for {key!r} is null")
        if isinstance(value, (Mapping, list)):
            raise PipelineConfigError(f"Pipeline '{name}': environment value for {key!r} must be a scalar")
        # YAML booleans keep their YAML spelling
        environment[str(key)] = str(value).lower() if isinstance(value, bool) else str(value)

    default_timeout = _as_timeout(data.get("default_timeout", 300.0), f"Pipeline '{name}'")

    return PipelineConfig(
        name=name,
        stages=tuple(stages),
        environment=environment,
        default_timeout=default_timeout if default_timeout is not None else 300.0,
    )


def _parse_stage_config(
    pipeline_name: str,
    index: int,
    data: Mapping[str, Any],
) -> StageConfig:
    """Parse a raw stage entry, expanding the ``redeploy`` preset."""
    stage_name = data.get("name")
    if not stage_name:
        raise PipelineConfigError(f"Pipeline '{pipeline_name}': stage {index} missing 'name'")

    if "redeploy" in data:
        options = _as_mapping(data["redeploy"], f"stage '{stage_name}' redeploy")
        return redeploy_stage(
            stage_name,
            runtime=str(options.get("runtime", "docker")),
            publish=options.get("publish", "${HOST_PORT}:${CONTAINER_PORT}"),
            run_options=str(options.get("run_options", "")),
            timeout=_as_timeout(options.get("timeout"), f"Stage '{stage_name}'"),
        )

    raw_steps = data.get("steps", [])
    if not isinstance(raw_steps, list):
        raise PipelineConfigError(f"Pipeline '{pipeline_name}': stage '{stage_name}' 'steps' must be a list")

    steps: list[StepConfig] = []
    for step_index, raw_step in enumerate(raw_steps):
        if not isinstance(raw_step, Mapping):
            raise PipelineConfigError(f"Stage '{stage_name}': step {step_index} must be a mapping")
        steps.append(_parse_step_config(stage_name, step_index, raw_step))

    return StageConfig(
        name=stage_name,
        steps=tuple(steps),
        best_effort=bool(data.get("best_effort", False)),
    )


def _parse_step_config(
    stage_name: str,
    index: int,
    data: Mapping[str, Any],
) -> StepConfig:
    """Parse a raw step entry into a StepConfig."""
    step_name = data.get("name")
    if not step_name:
        raise PipelineConfigError(f"Stage '{stage_name}': step {index} missing 'name'")

    raw_type = data.get("type", "shell")
    try:
        step_type = StepType(raw_type)
    except ValueError:
        raise PipelineConfigError(f"Stage '{stage_name}': step '{step_name}' invalid type {raw_type!r}") from None

    return StepConfig(
        name=step_name,
        type=step_type,
        command=data.get("command"),
        callable=data.get("callable"),
        args=_as_str_tuple(data.get("args"), f"Step '{step_name}' args"),
        env=_as_str_tuple(data.get("env"), f"Step '{step_name}' env"),
        credentials=_as_str_tuple(data.get("credentials"), f"Step '{step_name}' credentials"),
        working_dir=data.get("working_dir"),
        timeout=_as_timeout(data.get("timeout"), f"Step '{step_name}'"),
        best_effort=bool(data.get("best_effort", False)),
    )


__all__ = [
    "PipelineRunner",
    "parse_pipeline_config",
    "select_pipeline",
]
