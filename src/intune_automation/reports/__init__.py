"""Report rendering shared by the reporting automations."""

from .html import Column, render_html_table, status_class
from .tables import ReportFormat, write_csv, write_html

__all__ = ["Column", "ReportFormat", "render_html_table", "status_class", "write_csv", "write_html"]
