"""Command-line interface for Piano Coach."""

from .main import main

__all__ = ["main"]
