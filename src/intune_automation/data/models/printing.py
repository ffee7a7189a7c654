from __future__ import annotations

from pydantic import Field

from .common import GraphResource


class Printer(GraphResource):
    display_name: str | None = Field(default=None, alias="displayName")
    manufacturer: str | None = None
    model: str | None = None
    is_shared: bool | None = Field(default=None, alias="isShared")


class PrinterShare(GraphResource):
    """Universal Print share; ``printer`` is present when expanded."""

    display_name: str = Field(alias="displayName")
    allow_all_users: bool | None = Field(default=None, alias="allowAllUsers")
    printer: Printer | None = None

