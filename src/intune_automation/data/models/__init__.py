"""Models mirroring the Microsoft Graph payloads the automations touch."""

from .common import GraphBaseModel, GraphResource
from .compliance import (
    COMPLIANCE_ODATA_TYPES,
    CompliancePlatform,
    CompliancePolicy,
    OperatingSystemBuildRange,
)
from .configuration import (
    ConfigurationPolicy,
    PolicySetting,
    SettingDefinition,
    SettingOption,
    TemplateReference,
)
from .device import STORAGE_SELECT, ComplianceState, ManagedDevice
from .filters import AssignmentFilter, AssignmentFilterPlatform, AssignmentFilterType
from .health_script import (
    HEALTH_SCRIPT_ODATA_TYPE,
    DeviceHealthScript,
    RunAsAccount,
    decode_script_content,
)
from .printing import Printer, PrinterShare

__all__ = [
    "GraphBaseModel",
    "GraphResource",
    "COMPLIANCE_ODATA_TYPES",
    "CompliancePlatform",
    "CompliancePolicy",
    "OperatingSystemBuildRange",
    "ConfigurationPolicy",
    "PolicySetting",
    "SettingDefinition",
    "SettingOption",
    "TemplateReference",
    "STORAGE_SELECT",
    "ComplianceState",
    "ManagedDevice",
    "AssignmentFilter",
    "AssignmentFilterPlatform",
    "AssignmentFilterType",
    "HEALTH_SCRIPT_ODATA_TYPE",
    "DeviceHealthScript",
    "RunAsAccount",
    "decode_script_content",
    "Printer",
    "PrinterShare",
]
