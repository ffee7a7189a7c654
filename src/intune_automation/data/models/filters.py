from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, Field

from .common import GraphResource


class AssignmentFilterPlatform(StrEnum):
    UNKNOWN = "unknown"
    ANDROID = "android"
    IOS = "iOS"
    MACOS = "macOS"
    WINDOWS10_AND_LATER = "windows10AndLater"

    @classmethod
    def _missing_(cls, value: object) -> "AssignmentFilterPlatform":
        # Graph adds platforms over time and is loose about their casing.
        if isinstance(value, str):
            by_lower = {member.value.lower(): member for member in cls}
            return by_lower.get(value.lower(), cls.UNKNOWN)
        return cls.UNKNOWN


class AssignmentFilterType(StrEnum):
    """How a filter scopes a group assignment; Graph also knows ``none``."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class AssignmentFilter(GraphResource):
    display_name: str = Field(
        alias="displayName",
        validation_alias=AliasChoices("displayName", "name"),
    )
    platform: AssignmentFilterPlatform | None = None
    rule: str | None = None

    def is_named(self, name: str) -> bool:
        return self.display_name.casefold() == name.strip().casefold()
