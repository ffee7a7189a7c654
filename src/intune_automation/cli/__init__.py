"""Command line entry point (``intune-automation``)."""

from .app import build_parser, main

__all__ = ["build_parser", "main"]
