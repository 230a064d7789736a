"""Tests for the shipline.pipeline.validators module."""

from __future__ import annotations

import pytest

from shipline.pipeline.exceptions import PipelineConfigError
from shipline.pipeline.validators import (
    MAX_COMMAND_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PIPELINE_STAGES,
    template_placeholders,
    validate_callable_target,
    validate_command,
    validate_key,
    validate_name,
    validate_pipeline_config,
    validate_placeholders,
    validate_value,
)


class TestValidateName:
    """Tests for validate_name."""

    @pytest.mark.parametrize("name", ["build", "push-image", "deploy_01", "A"])
    def test_valid(self, name: str) -> None:
        """Accept names starting with a letter."""
        assert validate_name(name) == name

    def test_empty(self) -> None:
        """Reject empty names with the kind in the message."""
        with pytest.raises(PipelineConfigError, match="Stage name cannot be empty"):
            validate_name("", "Stage")

    def test_too_long(self) -> None:
        """Reject names over the hard limit."""
        with pytest.raises(PipelineConfigError, match="too long"):
            validate_name("a" * (MAX_NAME_LENGTH + 1))

    @pytest.mark.parametrize("name", ["1build", "-x", "has space", "semi;colon"])
    def test_invalid_chars(self, name: str) -> None:
        """Reject names with a bad first character or forbidden characters."""
        with pytest.raises(PipelineConfigError, match="must start with a letter"):
            validate_name(name)


class TestValidateKeyAndValue:
    """Tests for validate_key and validate_value."""

    @pytest.mark.parametrize("key", ["IMAGE_NAME", "_private", "port8080"])
    def test_valid_keys(self, key: str) -> None:
        """Accept identifier-like keys."""
        assert validate_key(key) == key

    @pytest.mark.parametrize("key", ["8080", "IMAGE-NAME", "A B"])
    def test_invalid_keys(self, key: str) -> None:
        """Reject keys that are not identifiers."""
        with pytest.raises(PipelineConfigError, match="Invalid"):
            validate_key(key)

    def test_non_string_value(self) -> None:
        """Environment values must be strings."""
        with pytest.raises(PipelineConfigError, match="must be a string"):
            validate_value("PORT", 80)

    def test_null_byte_value(self) -> None:
        """Reject values containing a null byte."""
        with pytest.raises(PipelineConfigError, match="null byte"):
            validate_value("X", "a\x00b")


class TestValidateCommand:
    """Tests for validate_command."""

    def test_valid(self) -> None:
        """Accept pipes and redirections."""
        assert validate_command("docker ps | grep web > out.txt") == "docker ps | grep web > out.txt"

    def test_blank(self) -> None:
        """Reject blank commands."""
        with pytest.raises(PipelineConfigError, match="cannot be empty"):
            validate_command("   ")

    def test_too_long(self) -> None:
        """Reject commands over the hard limit."""
        with pytest.raises(PipelineConfigError, match="too long"):
            validate_command("x" * (MAX_COMMAND_LENGTH + 1))


class TestValidateCallableTarget:
    """Tests for validate_callable_target."""

    def test_valid(self) -> None:
        """Accept module:function targets."""
        assert validate_callable_target("pkg.mod:run") == "pkg.mod:run"

    @pytest.mark.parametrize("target", ["pkg.mod", "pkg.mod:", ":run", "pkg mod:run"])
    def test_invalid(self, target: str) -> None:
        """Reject malformed targets."""
        with pytest.raises(PipelineConfigError, match="Invalid callable target"):
            validate_callable_target(target)


class TestPlaceholders:
    """Tests for template placeholder checks."""

    def test_extract(self) -> None:
        """Collect names across templates, ignoring shell $VAR syntax."""
        names = template_placeholders("docker push ${IMAGE}:${TAG}", "echo $HOME ${TAG}")
        assert names == {"IMAGE", "TAG"}

    def test_undeclared(self) -> None:
        """Reject placeholders not declared by the step."""
        with pytest.raises(PipelineConfigError, match="not declared.*TAG"):
            validate_placeholders("push", ("docker push ${IMAGE}:${TAG}",), ("IMAGE",), ())

    def test_credential_placeholder(self) -> None:
        """Credential ids satisfy placeholders too."""
        validate_placeholders("login", ("login -p ${TOKEN}",), (), ("TOKEN",))

    def test_overlap(self) -> None:
        """A key cannot be both an env key and a credential id."""
        with pytest.raises(PipelineConfigError, match="both env and credential"):
            validate_placeholders("login", ("echo",), ("TOKEN",), ("TOKEN",))


class TestValidatePipelineConfig:
    """Tests for validate_pipeline_config."""

    def test_no_stages(self) -> None:
        """Reject empty pipelines."""
        with pytest.raises(PipelineConfigError, match="at least one stage"):
            validate_pipeline_config(stage_count=0)

    def test_too_many_stages(self) -> None:
        """Reject pipelines over the hard limit."""
        with pytest.raises(PipelineConfigError, match="Too many stages"):
            validate_pipeline_config(stage_count=MAX_PIPELINE_STAGES + 1)
