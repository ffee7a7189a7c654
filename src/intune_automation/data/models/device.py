from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from .common import GraphResource


class ComplianceState(StrEnum):
    UNKNOWN = "unknown"
    COMPLIANT = "compliant"
    NONCOMPLIANT = "noncompliant"
    CONFLICT = "conflict"
    ERROR = "error"
    IN_GRACE_PERIOD = "inGracePeriod"
    CONFIG_MANAGER = "configManager"


class ManagedDevice(GraphResource):
    device_name: str | None = Field(default=None, alias="deviceName")
    operating_system: str | None = Field(default=None, alias="operatingSystem")
    os_version: str | None = Field(default=None, alias="osVersion")
    model: str | None = None
    manufacturer: str | None = None
    serial_number: str | None = Field(default=None, alias="serialNumber")
    user_principal_name: str | None = Field(default=None, alias="userPrincipalName")
    user_display_name: str | None = Field(default=None, alias="userDisplayName")
    azure_ad_device_id: str | None = Field(default=None, alias="azureADDeviceId")
    compliance_state: ComplianceState | None = Field(
        default=None, alias="complianceState"
    )
    enrolled_date_time: datetime | None = Field(default=None, alias="enrolledDateTime")
    last_sync_date_time: datetime | None = Field(default=None, alias="lastSyncDateTime")
    total_storage_space_in_bytes: int | None = Field(
        default=None, alias="totalStorageSpaceInBytes"
    )
    free_storage_space_in_bytes: int | None = Field(
        default=None, alias="freeStorageSpaceInBytes"
    )
    physical_memory_in_bytes: int | None = Field(
        default=None, alias="physicalMemoryInBytes"
    )

    @property
    def free_storage_percent(self) -> float | None:
        """Free space as a percentage of total, ``None`` when Graph reports no total."""

        total = self.total_storage_space_in_bytes
        free = self.free_storage_space_in_bytes
        if not total or free is None:
            return None
        return free / total * 100


# Fields the disk-space report needs; Graph only fills storage on single-device GETs.
STORAGE_SELECT: tuple[str, ...] = (
    "id",
    "deviceName",
    "operatingSystem",
    "osVersion",
    "model",
    "manufacturer",
    "serialNumber",
    "userPrincipalName",
    "lastSyncDateTime",
    "totalStorageSpaceInBytes",
    "freeStorageSpaceInBytes",
)
