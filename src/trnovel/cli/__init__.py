"""Command-line interface for trnovel."""

from .main import main

__all__ = ["main"]
