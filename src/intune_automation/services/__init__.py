"""Automations that act on Intune through Microsoft Graph."""

from .baselines import BaselineComparisonService
from .compliance import ComplianceThresholdService
from .devices import DeviceQueryService
from .disk_space import DiskSpaceReportService
from .health_scripts import HealthScriptSyncService
from .printers import PrinterProvisioningService

__all__ = [
    "BaselineComparisonService",
    "ComplianceThresholdService",
    "DeviceQueryService",
    "DiskSpaceReportService",
    "HealthScriptSyncService",
    "PrinterProvisioningService",
]
