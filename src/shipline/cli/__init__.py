"""Command line interface for shipline."""

from shipline.cli.app import app, main

__all__ = [
    "app",
    "main",
]
