"""Shell step executor for pipeline.

Renders the command template and executes it via
``subprocess.Popen(shell=True)``. The declared environment keys and
credentials are exposed to the child as environment variables, so a
command can read ``$REGISTRY_PASSWORD`` without the secret ever being
interpolated into the command line.

The child is polled rather than waited on, so both the step timeout and
a cancellation request can kill it. On POSIX the child runs in its own
session and the whole process group is killed.

Multi-line commands are supported natively via YAML folded (``>-``) or
literal (``|``) block scalars.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING

from shipline.pipeline.models import StepConfig, StepResult, StepStatus
from shipline.pipeline.steps.template import render_template, step_environ

if TYPE_CHECKING:
    from shipline.pipeline.cancel import CancelToken

logger = logging.getLogger(__name__)

#: Seconds between checks of the timeout and the cancel token.
POLL_INTERVAL = 0.1


def _kill(proc: subprocess.Popen[str]) -> None:
    """Kill a child process and, on POSIX, its process group."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:  # pragma: no cover - windows only
        proc.kill()


class ShellStep:
    """Execute a shell command as a pipeline step.

    Examples:
        >>> from shipline.pipeline.models import StepConfig
        >>> step = ShellStep()
        >>> config = StepConfig(name="greet", command="echo ${WHO}", env=("WHO",))
        >>> result = step.execute(config, {"WHO": "world"}, {})  # doctest: +SKIP
        >>> result.status  # doctest: +SKIP
        <StepStatus.SUCCESS: 'success'>
    """

    def __init__(self, poll_interval: float = POLL_INTERVAL) -> None:
        self.poll_interval = poll_interval

    def execute(
        self,
        config: StepConfig,
        env: Mapping[str, str],
        creds: Mapping[str, str],
        *,
        dry_run: bool = False,
        cancel: CancelToken | None = None,
    ) -> StepResult:
        """Execute a shell command.

        Args:
            config: Step definition with command template, timeout, etc.
            env: Environment store.
            creds: Credential view for the step.
            dry_run: If True, report the rendered command without executing it.
            cancel: Token polled while the command runs.

        Returns:
            StepResult with captured stdout, stderr, return code, and duration.
        """
        logger.debug("ShellStep '%s': template=%r", config.name, config.command)
        command = render_template(config.command or "", env, creds)

        if dry_run:
            logger.info("[DRY RUN] ShellStep '%s': %s", config.name, command)
            return StepResult(
                name=config.name,
                status=StepStatus.SKIPPED,
                stdout=f"[dry-run] would execute: {command}",
                best_effort=config.best_effort,
                timeout=config.timeout,
            )

        process_env = {**os.environ, **step_environ(config, env, creds)}
        workdir = os.path.expandvars(config.working_dir) if config.working_dir else None

        start = time.monotonic()
        try:
            proc = subprocess.Popen(  # noqa: S602
                command,
                shell=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=process_env,
                cwd=workdir,
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            logger.exception("ShellStep '%s' OS error", config.name)
            return StepResult(
                name=config.name,
                status=StepStatus.FAILED,
                duration=time.monotonic() - start,
                error=str(exc),
                best_effort=config.best_effort,
                timeout=config.timeout,
            )

        deadline = start + config.timeout if config.timeout is not None else None
        interrupted: StepStatus | None = None
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.cancelled:
                    interrupted = StepStatus.CANCELLED
                elif deadline is not None and time.monotonic() >= deadline:
                    interrupted = StepStatus.TIMEOUT
                else:
                    continue
                _kill(proc)
                stdout, stderr = proc.communicate()
                break

        duration = time.monotonic() - start

        if interrupted == StepStatus.TIMEOUT:
            logger.warning("ShellStep '%s' timed out after %.1fs", config.name, config.timeout)
            error = f"Timed out after {config.timeout}s"
        elif interrupted == StepStatus.CANCELLED:
            logger.warning("ShellStep '%s' killed by cancellation", config.name)
            error = "Cancelled"
        else:
            error = None

        if interrupted is not None:
            return StepResult(
                name=config.name,
                status=interrupted,
                stdout=stdout or "",
                stderr=stderr or "",
                return_code=proc.returncode,
                duration=duration,
                error=error,
                best_effort=config.best_effort,
                timeout=config.timeout,
            )

        status = StepStatus.SUCCESS if proc.returncode == 0 else StepStatus.FAILED
        if status == StepStatus.FAILED:
            error = stderr.strip() or f"exit code {proc.returncode}"
            logger.warning("ShellStep '%s' failed (rc=%d): %s", config.name, proc.returncode, error)

        return StepResult(
            name=config.name,
            status=status,
            stdout=stdout,
            stderr=stderr,
            return_code=proc.returncode,
            duration=duration,
            error=error,
            best_effort=config.best_effort,
            timeout=config.timeout,
        )


__all__ = [
    "POLL_INTERVAL",
    "ShellStep",
]
