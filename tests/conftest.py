"""Shared pytest fixtures for shipline test suite."""

from __future__ import annotations

# Disable Rich colors and force wide terminal BEFORE any imports
# Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"
os.environ["FORCE_COLOR"] = "0"
os.environ["COLUMNS"] = "200"  # Prevent text wrapping in CLI output
os.environ["LINES"] = "50"  # Rich ignores COLUMNS on a dumb terminal unless the height is set too

import logging
import shlex
import sys
import time
from collections.abc import Generator, Mapping
from dataclasses import dataclass, field

import pytest

from shipline.logging import ROOT_LOGGER_NAME
from shipline.pipeline.cancel import CancelToken
from shipline.pipeline.models import StepConfig, StepResult, StepStatus
from shipline.pipeline.steps.template import render_template

# pylint: disable=redefined-outer-name


@pytest.fixture(autouse=True)
def _reset_shipline_logger() -> Generator[None, None, None]:
    """Undo handler and propagation changes made by init_logging()."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fail_cmd() -> str:
    """Shell command exiting with status 1."""
    return f'{sys.executable} -c "import sys; sys.exit(1)"'


@pytest.fixture
def sleep_cmd() -> str:
    """Shell command sleeping far longer than any test timeout."""
    return f'{sys.executable} -c "import time; time.sleep(10)"'


# ============================================================================
# Fake container runtime
# ============================================================================


@dataclass
class FakeRuntime:
    """In-memory stand-in for the docker CLI, usable as a step executor.

    Understands ``docker build``, ``docker push``, ``docker rm -f NAME`` and
    ``docker run -d --name NAME ... IMAGE``. Any step whose name is in
    ``failing`` exits with status 1.
    """

    running: dict[str, str] = field(default_factory=dict)
    images: set[str] = field(default_factory=set)
    pushed: list[str] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    failing: set[str] = field(default_factory=set)

    def execute(
        self,
        config: StepConfig,
        env: Mapping[str, str],
        creds: Mapping[str, str],
        *,
        dry_run: bool = False,
        cancel: CancelToken | None = None,
    ) -> StepResult:
        command = render_template(config.command or "", env, creds)
        self.calls.append(command)
        start = time.monotonic()
        if dry_run:
            return StepResult(name=config.name, status=StepStatus.SKIPPED, stdout=command)
        if config.name in self.failing:
            return self._result(config, 1, "", f"{config.name} failed", start)

        argv = shlex.split(command)
        verb = argv[1] if len(argv) > 1 else ""
        if verb == "build":
            self.images.add(argv[argv.index("-t") + 1])
            return self._result(config, 0, "built", "", start)
        if verb == "push":
            self.pushed.append(argv[2])
            return self._result(config, 0, "pushed", "", start)
        if verb == "rm":
            name = argv[-1]
            if self.running.pop(name, None) is None:
                return self._result(config, 1, "", f"Error: No such container: {name}", start)
            return self._result(config, 0, name, "", start)
        if verb == "run":
            name = argv[argv.index("--name") + 1]
            if name in self.running:
                return self._result(config, 125, "", f"Conflict. The container name {name} is already in use", start)
            self.running[name] = argv[-1]
            return self._result(config, 0, "container-id", "", start)
        return self._result(config, 0, "", "", start)

    @staticmethod
    def _result(config: StepConfig, code: int, stdout: str, stderr: str, start: float) -> StepResult:
        return StepResult(
            name=config.name,
            status=StepStatus.SUCCESS if code == 0 else StepStatus.FAILED,
            stdout=stdout,
            stderr=stderr,
            return_code=code,
            duration=time.monotonic() - start,
            error=stderr or None,
            best_effort=config.best_effort,
            timeout=config.timeout,
        )


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    """Fresh in-memory container runtime."""
    return FakeRuntime()
