from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Sequence

from intune_automation.config.settings import DEFAULT_MAX_CONCURRENCY
from intune_automation.data import STORAGE_SELECT, ManagedDevice
from intune_automation.graph.errors import GraphAPIError
from intune_automation.reports import Column, write_csv, write_html
from intune_automation.services.devices import DeviceQueryService
from intune_automation.utils import format_timestamp, get_logger
from intune_automation.utils.formatters import GIB


logger = get_logger(__name__)

REPORT_BASENAME = "DiskSpaceReport"
DEFAULT_MIN_FREE_PERCENT = 10.0
DEFAULT_MIN_FREE_GB = 20.0


class DiskStatus(StrEnum):
    LOW = "Low"
    OK = "OK"
    UNKNOWN = "Unknown"


@dataclass(frozen=True, slots=True)
class DiskThresholds:
    min_free_percent: float = DEFAULT_MIN_FREE_PERCENT
    min_free_gb: float = DEFAULT_MIN_FREE_GB


@dataclass(slots=True)
class DiskSpaceEntry:
    device_id: str
    device_name: str | None
    user_principal_name: str | None = None
    operating_system: str | None = None
    model: str | None = None
    last_sync: str | None = None
    total_gb: float | None = None
    free_gb: float | None = None
    free_percent: float | None = None
    status: DiskStatus = DiskStatus.UNKNOWN
    error: str | None = None

    def as_row(self) -> dict[str, Any]:
        return {
            "device_name": self.device_name or self.device_id,
            "user_principal_name": self.user_principal_name,
            "operating_system": self.operating_system,
            "model": self.model,
            "last_sync": self.last_sync,
            "total_gb": self.total_gb,
            "free_gb": self.free_gb,
            "free_percent": self.free_percent,
            "status": self.status,
            "error": self.error,
        }


@dataclass(slots=True)
class DiskSpaceReport:
    thresholds: DiskThresholds
    entries: list[DiskSpaceEntry] = field(default_factory=list)

    def counts(self) -> dict[DiskStatus, int]:
        counts = {status: 0 for status in DiskStatus}
        for entry in self.entries:
            counts[entry.status] += 1
        return counts

    @property
    def failed(self) -> int:
        return sum(1 for entry in self.entries if entry.error)


REPORT_COLUMNS: tuple[Column, ...] = (
    Column("device_name", "Device"),
    Column("user_principal_name", "User"),
    Column("operating_system", "OS"),
    Column("model", "Model"),
    Column("last_sync", "Last sync"),
    Column("total_gb", "Total (GB)"),
    Column("free_gb", "Free (GB)"),
    Column("free_percent", "Free (%)"),
    Column("status", "Status", status=True),
    Column("error", "Error"),
)


def classify(device: ManagedDevice, thresholds: DiskThresholds) -> DiskSpaceEntry:
    """Low when below either threshold; Unknown when Graph reports no total."""

    entry = DiskSpaceEntry(
        device_id=device.id,
        device_name=device.device_name,
        user_principal_name=device.user_principal_name,
        operating_system=device.operating_system,
        model=device.model,
        last_sync=format_timestamp(device.last_sync_date_time),
    )
    percent = device.free_storage_percent
    if percent is None:
        return entry

    total = device.total_storage_space_in_bytes or 0
    free = device.free_storage_space_in_bytes or 0
    entry.total_gb = round(total / GIB, 2)
    entry.free_gb = round(free / GIB, 2)
    entry.free_percent = round(percent, 2)
    if percent < thresholds.min_free_percent or free / GIB < thresholds.min_free_gb:
        entry.status = DiskStatus.LOW
    else:
        entry.status = DiskStatus.OK
    return entry


def _sort_key(entry: DiskSpaceEntry) -> tuple[int, float, str]:
    # Unknowns last, then the fullest disks first.
    unknown = 1 if entry.free_percent is None else 0
    return (unknown, entry.free_percent or 0.0, (entry.device_name or entry.device_id).casefold())


def write_report(report: DiskSpaceReport, output_path: Path) -> list[Path]:
    rows = [entry.as_row() for entry in report.entries]
    counts = report.counts()
    summary: dict[str, Any] = {
        "Devices": len(report.entries),
        **{str(status): count for status, count in counts.items()},
        "Min free %": report.thresholds.min_free_percent,
        "Min free GB": report.thresholds.min_free_gb,
    }
    written = [
        write_html(
            output_path / f"{REPORT_BASENAME}.html",
            "Intune disk space report",
            REPORT_COLUMNS,
            rows,
            summary,
        ),
        write_csv(output_path / f"{REPORT_BASENAME}.csv", REPORT_COLUMNS, rows),
    ]
    for path in written:
        logger.info("Wrote disk space report", path=str(path))
    return written


class DiskSpaceReportService:
    """Collect per-device storage figures with a bounded number of parallel GETs."""

    def __init__(
        self,
        devices: DeviceQueryService,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._devices = devices
        self._max_concurrency = max_concurrency

    async def collect(
        self,
        *,
        thresholds: DiskThresholds | None = None,
        operating_system: str | None = "Windows",
        select: Sequence[str] = STORAGE_SELECT,
    ) -> DiskSpaceReport:
        thresholds = thresholds or DiskThresholds()
        inventory = await self._devices.list_devices(
            operating_system=operating_system,
            select=("id", "deviceName"),
        )
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def fetch(device: ManagedDevice) -> DiskSpaceEntry:
            async with semaphore:
                try:
                    detailed = await self._devices.get_device(device.id, select=select)
                except GraphAPIError as exc:
                    logger.warning(
                        "Failed to read device storage",
                        device=device.device_name or device.id,
                        error=str(exc),
                    )
                    return DiskSpaceEntry(
                        device_id=device.id,
                        device_name=device.device_name,
                        error=str(exc),
                    )
            return classify(detailed, thresholds)

        entries = list(await asyncio.gather(*(fetch(device) for device in inventory)))
        entries.sort(key=_sort_key)
        report = DiskSpaceReport(thresholds=thresholds, entries=entries)
        counts = report.counts()
        logger.info(
            "Collected disk space",
            devices=len(entries),
            low=counts[DiskStatus.LOW],
            ok=counts[DiskStatus.OK],
            unknown=counts[DiskStatus.UNKNOWN],
            failed=report.failed,
        )
        return report


__all__ = [
    "DEFAULT_MIN_FREE_GB",
    "DEFAULT_MIN_FREE_PERCENT",
    "REPORT_BASENAME",
    "REPORT_COLUMNS",
    "DiskSpaceEntry",
    "DiskSpaceReport",
    "DiskSpaceReportService",
    "DiskStatus",
    "DiskThresholds",
    "classify",
    "write_report",
]
