"""Rendering of ``${NAME}`` placeholders in step templates."""

from __future__ import annotations

import re
from collections.abc import Mapping

from shipline.pipeline.models import StepConfig
from shipline.pipeline.validators import PLACEHOLDER_PATTERN


def render_template(
    template: str,
    env: Mapping[str, str],
    creds: Mapping[str, str],
) -> str:
    """Substitute ``${NAME}`` placeholders.

    Credential ids win over environment keys. A name found in neither is
    looked up in ``env`` anyway so that an ``EnvironmentStore`` raises
    ``UnboundVariableError`` instead of rendering an empty string.

    Examples:
        >>> render_template("docker push ${IMAGE}", {"IMAGE": "shop/site"}, {})
        'docker push shop/site'
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in creds:
            return creds[name]
        return env[name]

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def step_environ(
    config: StepConfig,
    env: Mapping[str, str],
    creds: Mapping[str, str],
) -> dict[str, str]:
    """Return the variables a step exposes to its process.

    Only the environment keys and credential ids the step declares are
    included.
    """
    variables = {key: env[key] for key in config.env}
    variables.update({credential_id: creds[credential_id] for credential_id in config.credentials})
    return variables


__all__ = [
    "render_template",
    "step_environ",
]
