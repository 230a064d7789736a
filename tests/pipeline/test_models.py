"""Tests for the shipline.pipeline.models module."""

from __future__ import annotations

import dataclasses

import pytest

from shipline.pipeline.exceptions import (
    PipelineConfigError,
    StageStateError,
    StepFailedError,
    StepTimeoutError,
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


def _stage(name: str, *commands: str, best_effort: bool = False) -> StageConfig:
    steps = tuple(StepConfig(name=f"step{i}", command=cmd) for i, cmd in enumerate(commands or ("true",)))
    return StageConfig(name=name, steps=steps, best_effort=best_effort)


class TestStepConfig:
    """Tests for StepConfig validation."""

    def test_shell_defaults(self) -> None:
        """Shell is the default type and the step is frozen."""
        step = StepConfig(name="image", command="docker build -t ${IMAGE} .", env=("IMAGE",))
        assert step.type == StepType.SHELL
        assert step.best_effort is False
        assert step.templates == ("docker build -t ${IMAGE} .",)
        with pytest.raises(dataclasses.FrozenInstanceError):
            step.name = "other"  # type: ignore[misc]

    def test_shell_requires_command(self) -> None:
        """Shell steps need a command."""
        with pytest.raises(PipelineConfigError, match="requires a 'command'"):
            StepConfig(name="image")

    def test_callable_requires_target(self) -> None:
        """Callable steps need a target."""
        with pytest.raises(PipelineConfigError, match="requires a 'callable'"):
            StepConfig(name="call", type=StepType.CALLABLE)

    def test_undeclared_placeholder(self) -> None:
        """Every placeholder must be declared."""
        with pytest.raises(PipelineConfigError, match="IMAGE"):
            StepConfig(name="image", command="docker build -t ${IMAGE} .")

    def test_placeholder_in_args(self) -> None:
        """Argument templates are checked as well."""
        with pytest.raises(PipelineConfigError, match="TAG"):
            StepConfig(name="call", type=StepType.CALLABLE, callable="os.path:join", args=("${TAG}",))

    def test_non_positive_timeout(self) -> None:
        """Timeouts must be positive."""
        with pytest.raises(PipelineConfigError, match="timeout must be positive"):
            StepConfig(name="image", command="true", timeout=0)

    def test_invalid_credential_id(self) -> None:
        """Credential ids follow the key rules."""
        with pytest.raises(PipelineConfigError, match="credential id"):
            StepConfig(name="login", command="true", credentials=("bad-id",))


class TestStageConfig:
    """Tests for StageConfig validation."""

    def test_requires_steps(self) -> None:
        """A stage needs at least one step."""
        with pytest.raises(PipelineConfigError, match="at least one step"):
            StageConfig(name="build", steps=())

    def test_duplicate_step_names(self) -> None:
        """Step names are unique within a stage."""
        step = StepConfig(name="same", command="true")
        with pytest.raises(PipelineConfigError, match="duplicate step name"):
            StageConfig(name="build", steps=(step, step))

    def test_same_step_name_in_other_stage(self) -> None:
        """Step names may repeat across stages."""
        config = PipelineConfig(name="demo", stages=(_stage("build"), _stage("push")))
        assert config.stages[0].steps[0].name == config.stages[1].steps[0].name


class TestPipelineConfig:
    """Tests for PipelineConfig validation."""

    def test_duplicate_stage_names(self) -> None:
        """Stage names are unique."""
        with pytest.raises(PipelineConfigError, match="Duplicate stage name"):
            PipelineConfig(name="demo", stages=(_stage("build"), _stage("build")))

    def test_invalid_environment(self) -> None:
        """Environment keys and values are validated."""
        with pytest.raises(PipelineConfigError):
            PipelineConfig(name="demo", stages=(_stage("build"),), environment={"BAD-KEY": "x"})

    def test_default_timeout(self) -> None:
        """Default timeout must be positive."""
        with pytest.raises(PipelineConfigError, match="default_timeout"):
            PipelineConfig(name="demo", stages=(_stage("build"),), default_timeout=-1)

    def test_environment_read_only(self) -> None:
        """The environment is copied and cannot be mutated through the config."""
        source = {"IMAGE_NAME": "shop/site"}
        config = PipelineConfig(name="demo", stages=(_stage("build"),), environment=source)
        source["IMAGE_NAME"] = "changed"
        assert config.environment == {"IMAGE_NAME": "shop/site"}
        with pytest.raises(TypeError):
            config.environment["IMAGE_NAME"] = "other"  # type: ignore[index]

    def test_hashable(self) -> None:
        """Configs hash and compare like the other frozen definitions."""
        first = PipelineConfig(name="demo", stages=(_stage("build"),), environment={"TAG": "1"})
        second = PipelineConfig(name="demo", stages=(_stage("build"),), environment={"TAG": "1"})
        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_stage_lookup(self) -> None:
        """Look up stages by name."""
        config = PipelineConfig(name="demo", stages=(_stage("build"), _stage("push")))
        assert config.stage("push").name == "push"
        with pytest.raises(KeyError):
            config.stage("deploy")


class TestStepResult:
    """Tests for StepResult."""

    @pytest.mark.parametrize(
        ("status", "failed"),
        [
            (StepStatus.SUCCESS, False),
            (StepStatus.SKIPPED, False),
            (StepStatus.FAILED, True),
            (StepStatus.TIMEOUT, True),
            (StepStatus.CANCELLED, True),
        ],
    )
    def test_failed(self, status: StepStatus, failed: bool) -> None:
        """Failed, timed out and cancelled steps count as failures."""
        assert StepResult(name="s", status=status).failed is failed

    def test_raise_for_status_timeout(self) -> None:
        """Timed out steps raise StepTimeoutError."""
        result = StepResult(name="slow", status=StepStatus.TIMEOUT, timeout=5.0)
        with pytest.raises(StepTimeoutError) as exc_info:
            result.raise_for_status()
        assert exc_info.value.timeout == 5.0

    def test_raise_for_status_failed(self) -> None:
        """Failed steps raise StepFailedError with the error."""
        result = StepResult(name="push", status=StepStatus.FAILED, error="denied")
        with pytest.raises(StepFailedError, match="denied"):
            result.raise_for_status()

    def test_raise_for_status_success(self) -> None:
        """Successful steps do not raise."""
        StepResult(name="ok", status=StepStatus.SUCCESS).raise_for_status()


class TestStageResult:
    """Tests for the stage state machine."""

    def test_happy_path(self) -> None:
        """Pending -> running -> succeeded."""
        result = StageResult(name="build")
        assert result.status == StageStatus.PENDING
        result.transition(StageStatus.RUNNING)
        result.transition(StageStatus.SUCCEEDED)
        assert result.terminal

    @pytest.mark.parametrize(
        "terminal",
        [StageStatus.SUCCEEDED, StageStatus.FAILED, StageStatus.SKIPPED_BEST_EFFORT],
    )
    def test_terminal_states_are_final(self, terminal: StageStatus) -> None:
        """No transition leaves a terminal state."""
        result = StageResult(name="build")
        result.transition(StageStatus.RUNNING)
        result.transition(terminal)
        with pytest.raises(StageStateError, match="illegal transition"):
            result.transition(StageStatus.RUNNING)

    def test_cannot_skip_running(self) -> None:
        """A pending stage cannot finish without running."""
        with pytest.raises(StageStateError):
            StageResult(name="build").transition(StageStatus.SUCCEEDED)


class TestPipelineResult:
    """Tests for PipelineResult aggregation."""

    def _stage_result(self, name: str, status: StageStatus) -> StageResult:
        return StageResult(name=name, status=status)

    def test_empty_is_success(self) -> None:
        """A result with no stages is a success."""
        assert PipelineResult(name="demo").status == PipelineStatus.SUCCEEDED

    def test_failed_stage(self) -> None:
        """Any failed stage fails the pipeline."""
        result = PipelineResult(
            name="demo",
            stages=[
                self._stage_result("build", StageStatus.SUCCEEDED),
                self._stage_result("push", StageStatus.FAILED),
            ],
        )
        assert result.status == PipelineStatus.FAILED
        assert result.executed_stages == ["build", "push"]
        assert [stage.name for stage in result.failed_stages] == ["push"]

    def test_best_effort_stage_does_not_fail(self) -> None:
        """Skipped best-effort stages keep the pipeline successful."""
        result = PipelineResult(
            name="demo",
            stages=[self._stage_result("cleanup", StageStatus.SKIPPED_BEST_EFFORT)],
        )
        assert result.success

    def test_cancelled(self) -> None:
        """A cancelled run is failed."""
        result = PipelineResult(name="demo", cancelled=True)
        assert result.status == PipelineStatus.FAILED

    def test_to_dict(self) -> None:
        """The report is plain data."""
        stage = self._stage_result("build", StageStatus.SUCCEEDED)
        stage.steps.append(StepResult(name="image", status=StepStatus.SUCCESS, return_code=0))
        report = PipelineResult(name="demo", stages=[stage]).to_dict()
        assert report["status"] == "succeeded"
        assert report["stages"][0]["steps"][0] == {
            "name": "image",
            "status": "success",
            "return_code": 0,
            "duration": 0.0,
            "error": None,
            "best_effort": False,
        }
