"""Pipeline step implementations.

Provides concrete step executors for different execution modes:

- ShellStep: Render a command template and run it through the shell
- CallableStep: Import and call Python functions directly
"""

from shipline.pipeline.steps.callable import CallableStep
from shipline.pipeline.steps.shell import ShellStep
from shipline.pipeline.steps.template import render_template, step_environ

__all__ = [
    "CallableStep",
    "ShellStep",
    "render_template",
    "step_environ",
]
