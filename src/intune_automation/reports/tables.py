from __future__ import annotations

import csv
from enum import StrEnum
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from intune_automation.reports.html import Column, render_html_table
from intune_automation.utils import get_logger


logger = get_logger(__name__)


class ReportFormat(StrEnum):
    HTML = "html"
    CSV = "csv"
    BOTH = "both"

    @property
    def wants_html(self) -> bool:
        return self in (ReportFormat.HTML, ReportFormat.BOTH)

    @property
    def wants_csv(self) -> bool:
        return self in (ReportFormat.CSV, ReportFormat.BOTH)


def write_csv(
    path: Path,
    columns: Sequence[Column],
    rows: Iterable[Mapping[str, Any]],
) -> Path:
    """Write ``rows`` with column titles as the header row."""

    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=[column.title for column in columns])
        writer.writeheader()
        for row in rows:
            writer.writerow(
                {
                    column.title: "" if row.get(column.key) is None else row.get(column.key)
                    for column in columns
                }
            )
            count += 1
    logger.debug("Wrote CSV report", path=str(path), rows=count)
    return path


def write_html(
    path: Path,
    title: str,
    columns: Sequence[Column],
    rows: Iterable[Mapping[str, Any]],
    summary: Mapping[str, Any] | None = None,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_html_table(title, columns, rows, summary), encoding="utf-8")
    logger.debug("Wrote HTML report", path=str(path))
    return path


__all__ = ["ReportFormat", "write_csv", "write_html"]
