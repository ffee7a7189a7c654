from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path

from intune_automation.reports import (
    Column,
    ReportFormat,
    render_html_table,
    status_class,
    write_csv,
    write_html,
)

COLUMNS = (
    Column("name", "Name"),
    Column("value", "Value"),
    Column("status", "Status", status=True),
)
ROWS = [
    {"name": "<script>alert(1)</script>", "value": 1.5, "status": "Only in Baseline1"},
    {"name": "Plain", "value": None, "status": "OK"},
]


def test_status_class_slugs_values() -> None:
    assert status_class("Only in Baseline1") == "status-only-in-baseline1"
    assert status_class("OK") == "status-ok"
    assert status_class(None) == "status-none"


def test_render_html_escapes_cells_and_summary() -> None:
    document = render_html_table(
        "Report & more",
        COLUMNS,
        ROWS,
        {"Devices <all>": 2},
        generated_at=datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc),
    )

    assert "<script>" not in document
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in document
    assert "<title>Report &amp; more</title>" in document
    assert "Devices &lt;all&gt;: <strong>2</strong>" in document
    assert "Generated 2024-05-01 08:30:00 UTC" in document
    assert '<td class="status-only-in-baseline1">Only in Baseline1</td>' in document
    assert "<td>1.50</td>" in document


def test_write_csv_uses_titles_and_blanks(tmp_path: Path) -> None:
    path = write_csv(tmp_path / "nested" / "report.csv", COLUMNS, ROWS)

    with path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert list(rows[0]) == ["Name", "Value", "Status"]
    assert rows[0]["Value"] == "1.5"
    assert rows[1]["Value"] == ""


def test_write_html_creates_parent(tmp_path: Path) -> None:
    path = write_html(tmp_path / "out" / "report.html", "Title", COLUMNS, ROWS)

    assert path.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")


def test_report_format_flags() -> None:
    assert ReportFormat("both").wants_html and ReportFormat("both").wants_csv
    assert ReportFormat.HTML.wants_html and not ReportFormat.HTML.wants_csv
    assert ReportFormat.CSV.wants_csv and not ReportFormat.CSV.wants_html
