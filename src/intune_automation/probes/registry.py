from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Any, NamedTuple, Protocol, Sequence

from intune_automation.probes.base import ProbeError, ProbeResult
from intune_automation.utils import get_logger


logger = get_logger(__name__)


class RegistryHive(StrEnum):
    HKLM = "HKLM"
    HKCU = "HKCU"
    HKU = "HKU"
    HKCR = "HKCR"


class RegistryValueType(IntEnum):
    # Same numbering as the winreg REG_* constants.
    REG_SZ = 1
    REG_EXPAND_SZ = 2
    REG_DWORD = 4
    REG_MULTI_SZ = 7
    REG_QWORD = 11


class RegistryValue(NamedTuple):
    data: Any
    value_type: int


class RegistryBackend(Protocol):
    def read_value(self, hive: RegistryHive, key: str, name: str) -> RegistryValue | None: ...

    def write_value(
        self,
        hive: RegistryHive,
        key: str,
        name: str,
        data: Any,
        value_type: RegistryValueType,
    ) -> None: ...

    def subkeys(self, hive: RegistryHive, key: str) -> list[str]: ...


_HIVE_NAMES = {
    RegistryHive.HKLM: "HKEY_LOCAL_MACHINE",
    RegistryHive.HKCU: "HKEY_CURRENT_USER",
    RegistryHive.HKU: "HKEY_USERS",
    RegistryHive.HKCR: "HKEY_CLASSES_ROOT",
}


class WinRegBackend:
    """Registry access through ``winreg``, always in the 64-bit view."""

    def __init__(self) -> None:
        try:
            import winreg
        except ImportError as exc:
            raise ProbeError("Registry probes only run on Windows") from exc
        self._winreg = winreg

    def _root(self, hive: RegistryHive) -> Any:
        return getattr(self._winreg, _HIVE_NAMES[RegistryHive(hive)])

    def read_value(self, hive: RegistryHive, key: str, name: str) -> RegistryValue | None:
        winreg = self._winreg
        try:
            with winreg.OpenKey(
                self._root(hive), key, 0, winreg.KEY_READ | winreg.KEY_WOW64_64KEY
            ) as handle:
                data, value_type = winreg.QueryValueEx(handle, name)
        except FileNotFoundError:
            return None
        return RegistryValue(data, value_type)

    def write_value(
        self,
        hive: RegistryHive,
        key: str,
        name: str,
        data: Any,
        value_type: RegistryValueType,
    ) -> None:
        winreg = self._winreg
        with winreg.CreateKeyEx(
            self._root(hive), key, 0, winreg.KEY_WRITE | winreg.KEY_WOW64_64KEY
        ) as handle:
            winreg.SetValueEx(handle, name, 0, int(value_type), data)

    def subkeys(self, hive: RegistryHive, key: str) -> list[str]:
        winreg = self._winreg
        names: list[str] = []
        try:
            with winreg.OpenKey(
                self._root(hive), key, 0, winreg.KEY_READ | winreg.KEY_WOW64_64KEY
            ) as handle:
                index = 0
                while True:
                    try:
                        names.append(winreg.EnumKey(handle, index))
                    except OSError:
                        break
                    index += 1
        except FileNotFoundError:
            return []
        return names


def coerce_value(values: Sequence[str], value_type: RegistryValueType) -> Any:
    """Turn command-line strings into the Python value ``winreg`` stores for ``value_type``."""

    value_type = RegistryValueType(value_type)
    if value_type is RegistryValueType.REG_MULTI_SZ:
        return list(values)
    if len(values) != 1:
        raise ValueError(f"{value_type.name} takes exactly one value, got {len(values)}")
    raw = values[0]
    if value_type in (RegistryValueType.REG_DWORD, RegistryValueType.REG_QWORD):
        number = int(raw, 0)
        limit = 2**32 if value_type is RegistryValueType.REG_DWORD else 2**64
        if not 0 <= number < limit:
            raise ValueError(f"{raw} does not fit in {value_type.name}")
        return number
    return raw


def _normalise(data: Any, value_type: RegistryValueType) -> Any:
    if value_type is RegistryValueType.REG_MULTI_SZ:
        if isinstance(data, str):
            return [data]
        return list(data or [])
    if value_type in (RegistryValueType.REG_DWORD, RegistryValueType.REG_QWORD):
        if isinstance(data, int):
            return data
        try:
            return int(str(data), 0)
        except ValueError:
            return None
    return None if data is None else str(data)


class RegistryValueProbe:
    """Check, and optionally set, a single registry value."""

    def __init__(
        self,
        backend: RegistryBackend,
        *,
        hive: RegistryHive,
        key: str,
        name: str,
        expected: Any,
        value_type: RegistryValueType = RegistryValueType.REG_SZ,
    ) -> None:
        self._backend = backend
        self.hive = RegistryHive(hive)
        self.key = key.strip("\\")
        self.name = name
        self.value_type = RegistryValueType(value_type)
        self.expected = _normalise(expected, self.value_type)

    @property
    def location(self) -> str:
        return f"{self.hive}\\{self.key}\\{self.name}"

    def detect(self) -> ProbeResult:
        current = self._backend.read_value(self.hive, self.key, self.name)
        if current is None:
            return ProbeResult(False, f"{self.location} is missing")
        actual = _normalise(current.data, self.value_type)
        if actual != self.expected:
            return ProbeResult(
                False,
                f"{self.location} is {current.data!r}, expected {self.expected!r}",
            )
        return ProbeResult(True, f"{self.location} is {self.expected!r}")

    def remediate(self) -> ProbeResult:
        before = self.detect()
        if before.compliant:
            return before
        logger.info("Writing registry value", location=self.location, type=self.value_type.name)
        self._backend.write_value(self.hive, self.key, self.name, self.expected, self.value_type)
        after = self.detect()
        if not after.compliant:
            return ProbeResult(False, f"Write did not stick: {after.message}")
        return ProbeResult(True, f"Set {self.location} to {self.expected!r}")


__all__ = [
    "RegistryBackend",
    "RegistryHive",
    "RegistryValue",
    "RegistryValueProbe",
    "RegistryValueType",
    "WinRegBackend",
    "coerce_value",
]
