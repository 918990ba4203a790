"""Command-line interface for lenderpool."""

from .main import app, main

__all__ = ["app", "main"]
