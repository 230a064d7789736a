"""Package metadata."""

__app_name__ = "shipline"
__version__ = "0.1.0"
__description__ = "Declarative build, push and deploy pipeline engine."

__all__ = [
    "__app_name__",
    "__description__",
    "__version__",
]
