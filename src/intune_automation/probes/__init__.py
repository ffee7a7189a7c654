"""Detection and remediation probes that run on the managed device."""

from .base import ProbeError, ProbeResult
from .files import FilePresenceProbe, MatchMode
from .logon_rights import DEFAULT_RIGHT, LogonRightProbe
from .primary_user import find_primary_user_sid
from .registry import (
    RegistryBackend,
    RegistryHive,
    RegistryValue,
    RegistryValueProbe,
    RegistryValueType,
    WinRegBackend,
    coerce_value,
)
from .secedit import SeceditRunner, SubprocessSecedit

__all__ = [
    "DEFAULT_RIGHT",
    "FilePresenceProbe",
    "LogonRightProbe",
    "MatchMode",
    "ProbeError",
    "ProbeResult",
    "RegistryBackend",
    "RegistryHive",
    "RegistryValue",
    "RegistryValueProbe",
    "RegistryValueType",
    "SeceditRunner",
    "SubprocessSecedit",
    "WinRegBackend",
    "coerce_value",
    "find_primary_user_sid",
]
