"""Shared utility helpers for the Intune automations."""

from .logging import LoggingOptions, configure_logging, get_logger
from .formatters import GIB, format_timestamp

__all__ = [
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "GIB",
    "format_timestamp",
]
