from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from .common import GraphBaseModel, GraphResource


class CompliancePlatform(StrEnum):
    WINDOWS = "windows"
    IOS = "ios"
    MACOS = "macos"
    ANDROID = "android"


# Compliance policy @odata.type values mapped to the platform they govern.
COMPLIANCE_ODATA_TYPES: dict[str, CompliancePlatform] = {
    "#microsoft.graph.windows10CompliancePolicy": CompliancePlatform.WINDOWS,
    "#microsoft.graph.iosCompliancePolicy": CompliancePlatform.IOS,
    "#microsoft.graph.macOSCompliancePolicy": CompliancePlatform.MACOS,
    "#microsoft.graph.androidWorkProfileCompliancePolicy": CompliancePlatform.ANDROID,
    "#microsoft.graph.androidDeviceOwnerCompliancePolicy": CompliancePlatform.ANDROID,
    "#microsoft.graph.androidCompliancePolicy": CompliancePlatform.ANDROID,
}


class OperatingSystemBuildRange(GraphBaseModel):
    lowest_version: str = Field(alias="lowestVersion")
    highest_version: str = Field(alias="highestVersion")
    description: str | None = None


class CompliancePolicy(GraphResource):
    odata_type: str = Field(alias="@odata.type")
    display_name: str = Field(alias="displayName")
    description: str | None = None
    version: int | None = None
    os_minimum_version: str | None = Field(default=None, alias="osMinimumVersion")
    os_maximum_version: str | None = Field(default=None, alias="osMaximumVersion")
    valid_operating_system_build_ranges: list[OperatingSystemBuildRange] | None = Field(
        default=None, alias="validOperatingSystemBuildRanges"
    )

    @property
    def platform(self) -> CompliancePlatform | None:
        return COMPLIANCE_ODATA_TYPES.get(self.odata_type)
