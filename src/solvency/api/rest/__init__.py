"""REST API for the solvency service."""

from .app import create_app, main, run

__all__ = ["create_app", "run", "main"]
