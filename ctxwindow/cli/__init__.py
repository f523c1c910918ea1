"""Command line interface for ctxwindow."""

from ctxwindow.cli.main import main

__all__ = ["main"]
