"""shipline: a declarative build, push and deploy pipeline engine.

The engine runs ordered stages of steps against a frozen environment,
resolves credentials only for the step that needs them, and redeploys
containers idempotently. See ``shipline.pipeline`` for the API and
``shipline.cli`` for the ``shipline`` command.
"""

from shipline.meta import __app_name__, __version__

__all__ = [
    "__app_name__",
    "__version__",
]
