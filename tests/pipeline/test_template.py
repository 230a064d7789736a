"""Tests for the shipline.pipeline.steps.template module."""

from __future__ import annotations

import pytest

from shipline.pipeline.environment import EnvironmentStore
from shipline.pipeline.exceptions import UnboundVariableError
from shipline.pipeline.models import StepConfig
from shipline.pipeline.steps.template import render_template, step_environ


class TestRenderTemplate:
    """Tests for render_template()."""

    def test_env_and_credentials(self) -> None:
        """Both sources are substituted."""
        rendered = render_template("login -u ${USER} -p ${TOKEN}", {"USER": "shop"}, {"TOKEN": "t0k"})
        assert rendered == "login -u shop -p t0k"

    def test_shell_variables_untouched(self) -> None:
        """Only the braced form is a placeholder."""
        assert render_template('echo "$HOME" ${A}', {"A": "1"}, {}) == 'echo "$HOME" 1'

    def test_unbound(self) -> None:
        """A name in neither source raises from the environment store."""
        with pytest.raises(UnboundVariableError, match="MISSING"):
            render_template("echo ${MISSING}", EnvironmentStore(), {})


class TestStepEnviron:
    """Tests for step_environ()."""

    def test_only_declared_keys(self) -> None:
        """Undeclared bindings are not exposed."""
        config = StepConfig(name="push", command="true", env=("IMAGE",), credentials=("TOKEN",))
        variables = step_environ(config, {"IMAGE": "shop/site", "OTHER": "x"}, {"TOKEN": "t0k"})
        assert variables == {"IMAGE": "shop/site", "TOKEN": "t0k"}
