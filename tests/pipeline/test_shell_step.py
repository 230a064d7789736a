"""Tests for the shipline.pipeline.steps.shell module."""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from shipline.pipeline.cancel import CancelToken
from shipline.pipeline.environment import EnvironmentStore
from shipline.pipeline.exceptions import UnboundVariableError
from shipline.pipeline.models import StepConfig, StepStatus, StepType
from shipline.pipeline.steps.shell import ShellStep

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")


class TestShellStepExecute:
    """Tests for ShellStep.execute method."""

    def test_simple_echo(self) -> None:
        """Execute a simple echo command."""
        config = StepConfig(name="greet", type=StepType.SHELL, command="echo hello")
        result = ShellStep().execute(config, {}, {})
        assert result.status == StepStatus.SUCCESS
        assert "hello" in result.stdout
        assert result.return_code == 0
        assert result.duration > 0

    def test_renders_placeholders(self) -> None:
        """Environment placeholders are substituted before execution."""
        config = StepConfig(name="greet", command="echo ${WHO}", env=("WHO",))
        result = ShellStep().execute(config, EnvironmentStore({"WHO": "world"}), {})
        assert result.stdout.strip() == "world"

    def test_unbound_placeholder(self) -> None:
        """A missing key raises instead of rendering an empty string."""
        config = StepConfig(name="greet", command="echo ${WHO}", env=("WHO",))
        with pytest.raises(UnboundVariableError):
            ShellStep().execute(config, EnvironmentStore(), {})

    def test_command_with_stderr(self) -> None:
        """Capture stderr from command."""
        cmd = f"{sys.executable} -c \"import sys; sys.stderr.write('warn\\n')\""
        result = ShellStep().execute(StepConfig(name="warn", command=cmd), {}, {})
        assert result.status == StepStatus.SUCCESS
        assert "warn" in result.stderr

    def test_failing_command(self, fail_cmd: str) -> None:
        """Handle non-zero exit code."""
        result = ShellStep().execute(StepConfig(name="fail", command=fail_cmd), {}, {})
        assert result.status == StepStatus.FAILED
        assert result.return_code == 1
        assert result.error == "exit code 1"

    def test_failure_error_is_stderr(self) -> None:
        """The error message is taken from stderr when there is any."""
        cmd = f"{sys.executable} -c \"import sys; sys.stderr.write('denied'); sys.exit(3)\""
        result = ShellStep().execute(StepConfig(name="push", command=cmd), {}, {})
        assert result.return_code == 3
        assert result.error == "denied"

    def test_timeout(self, sleep_cmd: str) -> None:
        """The child is killed once the timeout elapses."""
        config = StepConfig(name="slow", command=sleep_cmd, timeout=0.5)
        start = time.monotonic()
        result = ShellStep().execute(config, {}, {})
        assert result.status == StepStatus.TIMEOUT
        assert result.error is not None
        assert "Timed out" in result.error
        assert time.monotonic() - start < 5

    def test_timeout_kills_grandchildren(self, sleep_cmd: str) -> None:
        """A background grandchild holding the pipes does not block the step."""
        config = StepConfig(name="slow", command=f"{sleep_cmd} & {sleep_cmd}", timeout=0.5)
        start = time.monotonic()
        result = ShellStep().execute(config, {}, {})
        assert result.status == StepStatus.TIMEOUT
        assert time.monotonic() - start < 5

    def test_cancel(self, sleep_cmd: str) -> None:
        """A cancellation request kills the running child."""
        token = CancelToken()
        timer = threading.Timer(0.3, token.cancel, args=("test",))
        timer.start()
        try:
            result = ShellStep().execute(StepConfig(name="slow", command=sleep_cmd), {}, {}, cancel=token)
        finally:
            timer.cancel()
        assert result.status == StepStatus.CANCELLED
        assert result.error == "Cancelled"

    def test_declared_env_exposed(self) -> None:
        """Declared keys and credentials are exported to the child process."""
        cmd = f"{sys.executable} -c \"import os; print(os.environ['IMAGE_NAME'], os.environ['TOKEN'])\""
        config = StepConfig(name="env", command=cmd, env=("IMAGE_NAME",), credentials=("TOKEN",))
        result = ShellStep().execute(config, {"IMAGE_NAME": "shop/site", "OTHER": "x"}, {"TOKEN": "t0k"})
        assert result.stdout.split() == ["shop/site", "t0k"]

    def test_undeclared_env_not_exposed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment keys the step does not declare are not exported."""
        monkeypatch.delenv("OTHER", raising=False)
        cmd = f"{sys.executable} -c \"import os; print(os.environ.get('OTHER', 'absent'))\""
        result = ShellStep().execute(StepConfig(name="env", command=cmd), {"OTHER": "x"}, {})
        assert result.stdout.strip() == "absent"

    def test_working_dir(self, tmp_path: Path) -> None:
        """Commands run in the configured working directory."""
        config = StepConfig(name="pwd", command="pwd", working_dir=str(tmp_path))
        result = ShellStep().execute(config, {}, {})
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    def test_missing_working_dir(self, tmp_path: Path) -> None:
        """An unusable working directory fails the step."""
        config = StepConfig(name="pwd", command="pwd", working_dir=str(tmp_path / "absent"))
        result = ShellStep().execute(config, {}, {})
        assert result.status == StepStatus.FAILED
        assert result.error


class TestShellStepDryRun:
    """Tests for dry-run mode."""

    def test_dry_run_does_not_execute(self, tmp_path: Path) -> None:
        """Dry run reports the rendered command only."""
        marker = tmp_path / "marker"
        config = StepConfig(name="touch", command="touch ${TARGET}", env=("TARGET",))
        result = ShellStep().execute(config, {"TARGET": str(marker)}, {}, dry_run=True)
        assert result.status == StepStatus.SKIPPED
        assert f"touch {marker}" in result.stdout
        assert not marker.exists()
