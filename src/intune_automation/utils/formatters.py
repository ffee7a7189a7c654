"""Formatting helpers for report cells."""

from __future__ import annotations

from datetime import datetime

GIB = 1024**3


def format_timestamp(value: datetime | None) -> str:
    """Minute-precision timestamp, or ``"—"`` when Graph has none.

    Examples:
        >>> format_timestamp(datetime(2024, 5, 1, 8, 30))
        '2024-05-01 08:30'
        >>> format_timestamp(None)
        '—'
    """
    if value is None:
        return "—"
    return value.strftime("%Y-%m-%d %H:%M")


__all__ = ["GIB", "format_timestamp"]
