"""Command-line interface for ocdesk."""

from ._app import create_app, main

__all__ = ["create_app", "main"]
