"""Callable step executor for pipeline.

Imports and calls a Python function directly using ``importlib``.
The callable target format is ``module.path:function_name`` and the
function receives the rendered argument templates positionally.

Note:
    A Python call cannot be killed. When a timeout is set the call runs in
    a daemon thread; if it does not finish in time the step is reported as
    timed out and the thread is abandoned.
"""

from __future__ import annotations

import importlib
import logging
import threading
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from shipline.pipeline.exceptions import StepImportError
from shipline.pipeline.models import StepConfig, StepResult, StepStatus
from shipline.pipeline.steps.template import render_template

if TYPE_CHECKING:
    from shipline.pipeline.cancel import CancelToken

logger = logging.getLogger(__name__)


def _load_target(config: StepConfig) -> Callable[..., Any]:
    """Import the function named by ``config.callable``.

    Raises:
        StepImportError: If the module or attribute cannot be imported.
    """
    target = config.callable or ""
    module_path, _, func_name = target.rpartition(":")
    try:
        module = importlib.import_module(module_path)
        func = getattr(module, func_name)
    except (ImportError, AttributeError, ValueError) as exc:
        logger.error("CallableStep '%s' import error: %s", config.name, exc)
        raise StepImportError(config.name, target) from exc
    if not callable(func):
        raise StepImportError(config.name, target)
    return func


class CallableStep:
    """Execute a Python callable as a pipeline step.

    The return value is captured in ``StepResult.return_value``; an
    exception raised by the function is reported as a failed step.

    Examples:
        >>> from shipline.pipeline.models import StepConfig, StepType
        >>> step = CallableStep()
        >>> config = StepConfig(
        ...     name="upper",
        ...     type=StepType.CALLABLE,
        ...     callable="operator:concat",
        ...     args=("${IMAGE}", ":latest"),
        ...     env=("IMAGE",),
        ... )
        >>> step.execute(config, {"IMAGE": "shop/site"}, {}).return_value
        'shop/site:latest'
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
        """Execute a Python callable.

        Args:
            config: Step definition with callable target, args, etc.
            env: Environment store.
            creds: Credential view for the step.
            dry_run: If True, report the call without executing it.
            cancel: Token checked while waiting on a call with a timeout.

        Returns:
            StepResult with return_value, duration, and status.

        Raises:
            StepImportError: If the callable target cannot be imported.
        """
        target = config.callable or ""
        logger.debug("CallableStep '%s': target=%r", config.name, target)
        args = [render_template(arg, env, creds) for arg in config.args]

        if dry_run:
            logger.info("[DRY RUN] CallableStep '%s': %s", config.name, target)
            return StepResult(
                name=config.name,
                status=StepStatus.SKIPPED,
                stdout=f"[dry-run] would call: {target}",
                best_effort=config.best_effort,
                timeout=config.timeout,
            )

        func = _load_target(config)

        start = time.monotonic()
        outcome: dict[str, Any] = {}

        def _call() -> None:
            try:
                outcome["value"] = func(*args)
            except Exception as exc:  # noqa: BLE001
                outcome["error"] = exc

        if config.timeout is None:
            _call()
        else:
            worker = threading.Thread(target=_call, name=f"shipline-step-{config.name}", daemon=True)
            worker.start()
            deadline = start + config.timeout
            while worker.is_alive():
                remaining = deadline - time.monotonic()
                if remaining <= 0 or (cancel is not None and cancel.cancelled):
                    break
                worker.join(min(remaining, 0.1))
            if worker.is_alive():
                cancelled = cancel is not None and cancel.cancelled
                logger.warning(
                    "CallableStep '%s' %s; abandoning worker thread",
                    config.name,
                    "cancelled" if cancelled else f"timed out after {config.timeout}s",
                )
                return StepResult(
                    name=config.name,
                    status=StepStatus.CANCELLED if cancelled else StepStatus.TIMEOUT,
                    duration=time.monotonic() - start,
                    error="Cancelled" if cancelled else f"Timed out after {config.timeout}s",
                    best_effort=config.best_effort,
                    timeout=config.timeout,
                )

        duration = time.monotonic() - start

        if "error" in outcome:
            exc = outcome["error"]
            logger.warning("CallableStep '%s' execution error: %s", config.name, exc)
            return StepResult(
                name=config.name,
                status=StepStatus.FAILED,
                duration=duration,
                error=str(exc) or type(exc).__name__,
                best_effort=config.best_effort,
                timeout=config.timeout,
            )

        logger.debug("CallableStep '%s' completed in %.3fs", config.name, duration)
        return StepResult(
            name=config.name,
            status=StepStatus.SUCCESS,
            return_value=outcome.get("value"),
            duration=duration,
            best_effort=config.best_effort,
            timeout=config.timeout,
        )


__all__ = [
    "CallableStep",
]
