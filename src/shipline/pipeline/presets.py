"""Ready-made stages for the build, push and deploy workflow.

``redeploy_stage`` is the idempotent redeploy policy: it first removes any
container already running under the target name, as a best-effort step
whose failure (typically "no such container") is absorbed, then starts
the new one. Running it twice against the same name converges to a single
running instance instead of failing on the name collision.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from shipline.pipeline.exceptions import PipelineConfigError
from shipline.pipeline.models import PipelineConfig, StageConfig, StepConfig
from shipline.pipeline.validators import template_placeholders

#: Container runtimes the presets know how to drive.
SUPPORTED_RUNTIMES = frozenset({"docker", "podman"})

#: Default port mapping; the nginx image serves on port 80.
DEFAULT_PUBLISH = "${HOST_PORT}:${CONTAINER_PORT}"


def _check_runtime(runtime: str) -> str:
    if runtime not in SUPPORTED_RUNTIMES:
        expected = ", ".join(sorted(SUPPORTED_RUNTIMES))
        raise PipelineConfigError(f"Unsupported container runtime {runtime!r} (expected one of: {expected})")
    return runtime


def _shell(name: str, command: str, **kwargs: Any) -> StepConfig:
    """Build a shell step whose env keys are the command's placeholders."""
    credentials = tuple(kwargs.pop("credentials", ()))
    env = tuple(sorted(template_placeholders(command) - set(credentials)))
    return StepConfig(name=name, command=command, env=env, credentials=credentials, **kwargs)


def redeploy_stage(
    name: str = "deploy",
    *,
    runtime: str = "docker",
    publish: str | None = DEFAULT_PUBLISH,
    run_options: str = "",
    timeout: float | None = None,
) -> StageConfig:
    """Build an idempotent remove-then-create deploy stage.

    Args:
        name: Stage name.
        runtime: Container CLI (``docker`` or ``podman``).
        publish: Port mapping template, or None to publish nothing.
        run_options: Extra options inserted before the image name.
        timeout: Timeout for each step (None uses the pipeline default).

    Returns:
        Stage with a best-effort ``remove`` step and a ``run`` step, using
        the ``CONTAINER_NAME`` and ``IMAGE_NAME`` environment keys.

    Examples:
        >>> stage = redeploy_stage()
        >>> [(step.name, step.best_effort) for step in stage.steps]
        [('remove', True), ('run', False)]
        >>> stage.steps[1].command
        'docker run -d --name ${CONTAINER_NAME} -p ${HOST_PORT}:${CONTAINER_PORT} ${IMAGE_NAME}'
    """
    _check_runtime(runtime)
    parts = [runtime, "run -d --name ${CONTAINER_NAME}"]
    if publish:
        parts.append(f"-p {publish}")
    if run_options:
        parts.append(run_options)
    parts.append("${IMAGE_NAME}")

    return StageConfig(
        name=name,
        steps=(
            _shell("remove", f"{runtime} rm -f ${{CONTAINER_NAME}}", best_effort=True, timeout=timeout),
            _shell("run", " ".join(parts), timeout=timeout),
        ),
    )


def build_push_deploy(
    name: str = "build-push-deploy",
    *,
    environment: Mapping[str, str] | None = None,
    runtime: str = "docker",
    checkout: bool = True,
    registry_credential: str = "REGISTRY_PASSWORD",
    default_timeout: float = 600.0,
) -> PipelineConfig:
    """Build the canonical checkout, build, push and deploy pipeline.

    Environment keys used: ``REPO_URL`` (when ``checkout``), ``IMAGE_NAME``,
    ``REGISTRY_USER``, ``CONTAINER_NAME``, ``HOST_PORT`` and
    ``CONTAINER_PORT``. The registry password is read from the
    ``registry_credential`` credential through the process environment,
    never interpolated into the command line.

    Args:
        name: Pipeline name.
        environment: Initial environment bindings.
        runtime: Container CLI (``docker`` or ``podman``).
        checkout: Include a ``checkout`` stage cloning ``REPO_URL``.
        registry_credential: Credential id holding the registry password.
        default_timeout: Default step timeout in seconds.

    Returns:
        Pipeline definition.
    """
    _check_runtime(runtime)
    stages: list[StageConfig] = []
    if checkout:
        stages.append(
            StageConfig(
                name="checkout",
                steps=(_shell("clone", "git clone --depth 1 ${REPO_URL} ."),),
            )
        )
    stages.append(
        StageConfig(
            name="build",
            steps=(_shell("image", f"{runtime} build -t ${{IMAGE_NAME}} ."),),
        )
    )
    stages.append(
        StageConfig(
            name="push",
            steps=(
                _shell(
                    "login",
                    f'printf "%s" "${registry_credential}" | {runtime} login -u ${{REGISTRY_USER}} --password-stdin',
                    credentials=(registry_credential,),
                ),
                _shell("image", f"{runtime} push ${{IMAGE_NAME}}"),
            ),
        )
    )
    stages.append(redeploy_stage(runtime=runtime))

    return PipelineConfig(
        name=name,
        stages=tuple(stages),
        environment=dict(environment or {}),
        default_timeout=default_timeout,
    )


__all__ = [
    "DEFAULT_PUBLISH",
    "SUPPORTED_RUNTIMES",
    "build_push_deploy",
    "redeploy_stage",
]
