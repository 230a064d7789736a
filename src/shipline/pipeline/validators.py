"""Input validation for shipline.pipeline module.

This module provides validation functions for pipeline definitions,
implementing deep defense against malformed input before anything
is executed.
"""

from __future__ import annotations

import re

from shipline.pipeline.exceptions import PipelineConfigError

# ============================================================================
# Constants - Hard Limits
# ============================================================================

#: Maximum stage or step name length.
MAX_NAME_LENGTH = 64

#: Pattern for valid stage and step names.
NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")

#: Pattern for environment keys and credential ids.
KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

#: Maximum length of an environment key or credential id.
MAX_KEY_LENGTH = 128

#: Maximum length of an environment value.
MAX_VALUE_LENGTH = 4096

#: Maximum number of stages in a single pipeline.
MAX_PIPELINE_STAGES = 50

#: Maximum number of steps in a single stage.
MAX_STAGE_STEPS = 50

#: Maximum number of arguments for a step.
MAX_STEP_ARGS = 50

#: Maximum length of a command template.
MAX_COMMAND_LENGTH = 8192

#: Maximum length of a callable target string.
MAX_CALLABLE_TARGET_LENGTH = 256

#: Pattern for valid callable targets (module.path:function_name).
CALLABLE_TARGET_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_.]*:[a-zA-Z_][a-zA-Z0-9_]*$")

#: Placeholder syntax used in command and argument templates.
PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


# ============================================================================
# Validation Functions
# ============================================================================


def validate_name(name: str, kind: str = "Step") -> str:
    """Validate and return a stage or step name.

    Rules:
    - Cannot be empty
    - Max 64 characters (hard limit)
    - Must start with a letter
    - Only alphanumeric, underscore, hyphen allowed

    Args:
        name: Name to validate.
        kind: Label used in error messages ("Stage" or "Step").

    Returns:
        The validated name (unchanged).

    Raises:
        PipelineConfigError: If name is invalid.

    Examples:
        >>> validate_name("build_image")
        'build_image'
        >>> validate_name("push-01", "Stage")
        'push-01'
        >>> validate_name("")
        Traceback (most recent call last):
            ...
        shipline.pipeline.exceptions.PipelineConfigError: Step name cannot be empty
    """
    if not name:
        raise PipelineConfigError(f"{kind} name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise PipelineConfigError(f"{kind} name too long (max {MAX_NAME_LENGTH} chars)")
    if not NAME_PATTERN.match(name):
        raise PipelineConfigError(
            f"{kind} name must start with a letter and contain only alphanumeric, underscore, or hyphen characters"
        )
    return name


def validate_key(key: str, kind: str = "Environment key") -> str:
    """Validate an environment key or credential id.

    Args:
        key: Key to validate.
        kind: Label used in error messages.

    Returns:
        The validated key (unchanged).

    Raises:
        PipelineConfigError: If the key is invalid.

    Examples:
        >>> validate_key("IMAGE_NAME")
        'IMAGE_NAME'
    """
    if not key:
        raise PipelineConfigError(f"{kind} cannot be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise PipelineConfigError(f"{kind} too long (max {MAX_KEY_LENGTH} chars)")
    if not KEY_PATTERN.match(key):
        raise PipelineConfigError(f"Invalid {kind.lower()} {key!r}")
    return key


def validate_value(key: str, value: object) -> str:
    """Validate an environment value.

    Args:
        key: Key the value is bound to (for error messages).
        value: Value to validate.

    Returns:
        The validated value.

    Raises:
        PipelineConfigError: If the value is not a string or is too long.
    """
    if not isinstance(value, str):
        raise PipelineConfigError(f"Environment value for {key!r} must be a string, got {type(value).__name__}")
    if len(value) > MAX_VALUE_LENGTH:
        raise PipelineConfigError(f"Environment value for {key!r} too long (max {MAX_VALUE_LENGTH} chars)")
    if "\x00" in value:
        raise PipelineConfigError(f"Environment value for {key!r} contains a null byte")
    return value


def validate_command(command: str) -> str:
    """Validate a shell command template.

    Args:
        command: Command template to validate.

    Returns:
        The validated command (unchanged).

    Raises:
        PipelineConfigError: If the command is empty, too long or contains a null byte.
    """
    if not command or not command.strip():
        raise PipelineConfigError("Command cannot be empty")
    if len(command) > MAX_COMMAND_LENGTH:
        raise PipelineConfigError(f"Command too long (max {MAX_COMMAND_LENGTH} chars)")
    if "\x00" in command:
        raise PipelineConfigError("Command contains a null byte")
    return command


def validate_callable_target(target: str) -> str:
    """Validate a callable target string.

    Expected format: ``module.path:function_name``

    Args:
        target: Callable target string to validate.

    Returns:
        The validated target (unchanged).

    Raises:
        PipelineConfigError: If target is invalid.

    Examples:
        >>> validate_callable_target("mymodule:run")
        'mymodule:run'
        >>> validate_callable_target("my.pkg.module:do_work")
        'my.pkg.module:do_work'
    """
    if not target:
        raise PipelineConfigError("Callable target cannot be empty")
    if len(target) > MAX_CALLABLE_TARGET_LENGTH:
        raise PipelineConfigError(f"Callable target too long (max {MAX_CALLABLE_TARGET_LENGTH} chars)")
    if not CALLABLE_TARGET_PATTERN.match(target):
        raise PipelineConfigError(f"Invalid callable target format: {target!r} (expected 'module.path:function_name')")
    return target


def template_placeholders(*templates: str) -> set[str]:
    """Return the placeholder names used by one or more templates.

    Examples:
        >>> sorted(template_placeholders("docker push ${IMAGE}:${TAG}", "${TAG}"))
        ['IMAGE', 'TAG']
    """
    names: set[str] = set()
    for template in templates:
        names.update(PLACEHOLDER_PATTERN.findall(template))
    return names


def validate_placeholders(
    step_name: str,
    templates: tuple[str, ...],
    env_keys: tuple[str, ...],
    credential_ids: tuple[str, ...],
) -> None:
    """Check that every template placeholder is declared by the step.

    Args:
        step_name: Step name (for error messages).
        templates: Command and argument templates.
        env_keys: Environment keys declared by the step.
        credential_ids: Credential ids declared by the step.

    Raises:
        PipelineConfigError: If a placeholder is not declared.
    """
    declared = set(env_keys) | set(credential_ids)
    undeclared = template_placeholders(*templates) - declared
    if undeclared:
        names = ", ".join(sorted(undeclared))
        raise PipelineConfigError(f"Step '{step_name}': placeholders not declared in env or credentials: {names}")

    overlap = set(env_keys) & set(credential_ids)
    if overlap:
        names = ", ".join(sorted(overlap))
        raise PipelineConfigError(f"Step '{step_name}': keys declared as both env and credential: {names}")


def validate_pipeline_config(*, stage_count: int) -> None:
    """Validate pipeline-level configuration.

    Args:
        stage_count: Number of stages in the pipeline.

    Raises:
        PipelineConfigError: If configuration is invalid.
    """
    if stage_count == 0:
        raise PipelineConfigError("Pipeline must have at least one stage")
    if stage_count > MAX_PIPELINE_STAGES:
        raise PipelineConfigError(f"Too many stages (max {MAX_PIPELINE_STAGES})")


__all__ = [
    "CALLABLE_TARGET_PATTERN",
    "KEY_PATTERN",
    "MAX_CALLABLE_TARGET_LENGTH",
    "MAX_COMMAND_LENGTH",
    "MAX_KEY_LENGTH",
    "MAX_NAME_LENGTH",
    "MAX_PIPELINE_STAGES",
    "MAX_STAGE_STEPS",
    "MAX_STEP_ARGS",
    "MAX_VALUE_LENGTH",
    "NAME_PATTERN",
    "PLACEHOLDER_PATTERN",
    "template_placeholders",
    "validate_callable_target",
    "validate_command",
    "validate_key",
    "validate_name",
    "validate_pipeline_config",
    "validate_placeholders",
    "validate_value",
]
