"""Tests for the shipline.config.loader module."""

from __future__ import annotations

from pathlib import Path

import pytest
from box import Box

from shipline.config import (
    CONFIG_ENV_VAR,
    ConfigError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    load_config,
    load_from_string,
    resolve_config_path,
)


class TestLoadFromString:
    """Tests for load_from_string()."""

    def test_returns_box(self) -> None:
        """Parsed mappings support attribute access."""
        config = load_from_string("pipeline:\n  name: shop\n")
        assert isinstance(config, Box)
        assert config.pipeline.name == "shop"

    def test_empty_document(self) -> None:
        """An empty document is an empty configuration."""
        assert load_from_string("") == {}

    def test_invalid_yaml(self) -> None:
        """Syntax errors become ConfigFormatError."""
        with pytest.raises(ConfigFormatError, match="Invalid YAML"):
            load_from_string("pipeline: [unclosed")

    def test_top_level_must_be_mapping(self) -> None:
        """A list document is rejected."""
        with pytest.raises(ConfigFormatError, match="must be a mapping"):
            load_from_string("- a\n- b\n")

    def test_env_expansion(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Process environment references are expanded, templates are kept."""
        monkeypatch.setenv("SHIPLINE_TEST_USER", "shop")
        monkeypatch.delenv("SHIPLINE_TEST_PORT", raising=False)
        config = load_from_string(
            "environment:\n"
            "  REGISTRY_USER: ${env:SHIPLINE_TEST_USER}\n"
            "  HOST_PORT: ${SHIPLINE_TEST_PORT:-8080}\n"
            "command: docker push ${IMAGE_NAME}\n"
        )
        assert config.environment.REGISTRY_USER == "shop"
        assert config.environment.HOST_PORT == "8080"
        assert config.command == "docker push ${IMAGE_NAME}"

    def test_bare_reference_not_expanded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A bare ${VAR} stays a step placeholder even when VAR is set."""
        monkeypatch.setenv("IMAGE_NAME", "from-process-env")
        config = load_from_string("command: docker build -t ${IMAGE_NAME} .\n")
        assert config.command == "docker build -t ${IMAGE_NAME} ."

    def test_required_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A required reference to an unset variable fails."""
        monkeypatch.delenv("SHIPLINE_TEST_ABSENT", raising=False)
        with pytest.raises(ConfigFormatError, match="SHIPLINE_TEST_ABSENT"):
            load_from_string("value: ${env:SHIPLINE_TEST_ABSENT}\n")

    def test_expansion_in_lists(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Expansion walks nested lists."""
        monkeypatch.setenv("SHIPLINE_TEST_ARG", "x")
        config = load_from_string("args:\n  - ${env:SHIPLINE_TEST_ARG}\n  - 3\n")
        assert config.args == ["x", 3]


class TestResolveConfigPath:
    """Tests for configuration file lookup."""

    def test_explicit_path(self, tmp_path: Path) -> None:
        """An explicit path wins."""
        path = tmp_path / "custom.yml"
        path.write_text("{}", encoding="utf-8")
        assert resolve_config_path(path) == path

    def test_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """The environment variable is used when no path is given."""
        path = tmp_path / "from-env.yml"
        path.write_text("{}", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert resolve_config_path() == path

    def test_cwd_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """shipline.yml in the working directory is the fallback."""
        (tmp_path / "shipline.yml").write_text("{}", encoding="utf-8")
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        assert resolve_config_path().resolve() == (tmp_path / "shipline.yml").resolve()

    def test_missing(self, tmp_path: Path) -> None:
        """A missing file raises ConfigFileNotFoundError, which is also a FileNotFoundError."""
        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            resolve_config_path(tmp_path / "absent.yml")
        assert isinstance(exc_info.value, FileNotFoundError)
        assert isinstance(exc_info.value, ConfigError)


class TestLoadConfig:
    """Tests for load_config()."""

    def test_load(self, tmp_path: Path) -> None:
        """Read and parse a file."""
        path = tmp_path / "shipline.yml"
        path.write_text("pipeline:\n  name: shop\n  stages: []\n", encoding="utf-8")
        config = load_config(path)
        assert config.pipeline.name == "shop"
        assert config.pipeline.stages == []

    def test_error_names_file(self, tmp_path: Path) -> None:
        """Format errors mention the offending file."""
        path = tmp_path / "broken.yml"
        path.write_text("[1, 2", encoding="utf-8")
        with pytest.raises(ConfigFormatError, match="broken.yml"):
            load_config(path)
