from __future__ import annotations

import html
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence


@dataclass(frozen=True, slots=True)
class Column:
    """Report column: ``key`` into each row, ``title`` for the header.

    Cells of a ``status`` column get a ``status-<value>`` class so the
    stylesheet can colour them.
    """

    key: str
    title: str
    status: bool = False


_STYLE = """
body { font-family: 'Segoe UI', Arial, sans-serif; margin: 24px; color: #1f2937; }
h1 { font-size: 1.5em; margin-bottom: 4px; }
.generated { color: #6b7280; font-size: 0.85em; margin-bottom: 16px; }
.summary { display: flex; gap: 12px; flex-wrap: wrap; margin-bottom: 16px; }
.summary span { background: #f3f4f6; border-radius: 10px; padding: 4px 12px; font-size: 0.9em; }
table { border-collapse: collapse; width: 100%; font-size: 0.9em; }
th { background: #0078d4; color: #fff; text-align: left; padding: 8px; }
td { border-bottom: 1px solid #e5e7eb; padding: 6px 8px; vertical-align: top; }
tr:nth-child(even) td { background: #f9fafb; }
td.status-same, td.status-ok { color: #15803d; font-weight: 600; }
td.status-different, td.status-low { color: #b91c1c; font-weight: 600; }
td.status-only-in-baseline1, td.status-only-in-baseline2, td.status-unknown { color: #b45309; font-weight: 600; }
""".strip()


def status_class(value: Any) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower()).strip("-")
    return f"status-{slug or 'none'}"


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def render_html_table(
    title: str,
    columns: Sequence[Column],
    rows: Iterable[Mapping[str, Any]],
    summary: Mapping[str, Any] | None = None,
    *,
    generated_at: datetime | None = None,
) -> str:
    """Render a standalone HTML document holding one table; every cell is escaped."""

    esc = html.escape
    generated = (generated_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S %Z")

    header = "".join(f"<th>{esc(column.title)}</th>" for column in columns)
    body_rows: list[str] = []
    for row in rows:
        cells: list[str] = []
        for column in columns:
            value = row.get(column.key)
            if column.status:
                cells.append(f'<td class="{status_class(value)}">{esc(_cell(value))}</td>')
            else:
                cells.append(f"<td>{esc(_cell(value))}</td>")
        body_rows.append("<tr>" + "".join(cells) + "</tr>")

    chips = ""
    if summary:
        chips = (
            '<div class="summary">'
            + "".join(
                f"<span>{esc(str(label))}: <strong>{esc(_cell(value))}</strong></span>"
                for label, value in summary.items()
            )
            + "</div>"
        )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{esc(title)}</title>
<style>
{_STYLE}
</style>
</head>
<body>
<h1>{esc(title)}</h1>
<div class="generated">Generated {esc(generated)}</div>
{chips}
<table>
<thead><tr>{header}</tr></thead>
<tbody>
{chr(10).join(body_rows)}
</tbody>
</table>
</body>
</html>
"""


__all__ = ["Column", "render_html_table", "status_class"]
