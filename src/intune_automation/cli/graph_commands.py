"""Sub-commands that talk to Microsoft Graph."""

from __future__ import annotations

import argparse
from pathlib import Path

from intune_automation.config import Settings
from intune_automation.data import AssignmentFilterType
from intune_automation.graph.client import GraphClientFactory
from intune_automation.reports import ReportFormat
from intune_automation.services import (
    BaselineComparisonService,
    ComplianceThresholdService,
    DeviceQueryService,
    DiskSpaceReportService,
    HealthScriptSyncService,
    PrinterProvisioningService,
)
from intune_automation.services import baselines, disk_space
from intune_automation.services.compliance import parse_platforms, parse_thresholds
from intune_automation.services.disk_space import DiskThresholds


def _emit(line: str) -> None:
    print(line, flush=True)


def prepare_compliance(args: argparse.Namespace) -> None:
    args.thresholds = parse_thresholds(args.min_version)
    args.platform_list = parse_platforms(args.platforms) if args.platforms else None
    if args.platform_list:
        missing = [str(p) for p in args.platform_list if p not in args.thresholds]
        if missing:
            raise ValueError(f"--min-version missing for: {', '.join(missing)}")


def prepare_printers(args: argparse.Namespace) -> None:
    if args.filter_name and not args.group_id:
        raise ValueError("--filter-name requires --group-id")


def prepare_disk_space(args: argparse.Namespace) -> None:
    if args.max_concurrency is not None and args.max_concurrency < 1:
        raise ValueError("--max-concurrency must be at least 1")
    if args.min_free_percent < 0 or args.min_free_gb < 0:
        raise ValueError("Free space thresholds must not be negative")


async def health_scripts_sync(
    args: argparse.Namespace,
    factory: GraphClientFactory,
    _settings: Settings,
) -> int:
    service = HealthScriptSyncService(factory)
    result = await service.sync(Path(args.scripts_folder), force=args.force, what_if=args.what_if)
    prefix = "What-if: " if result.what_if else ""
    _emit(
        f"{prefix}created {len(result.created)}, updated {len(result.updated)}, "
        f"unchanged {len(result.unchanged)}, skipped {len(result.skipped)}, "
        f"failed {len(result.failed)}"
    )
    for name, error in sorted(result.failed.items()):
        _emit(f"  FAILED {name}: {error}")
    return 0 if result.succeeded else 1


async def compliance_os_thresholds(
    args: argparse.Namespace,
    factory: GraphClientFactory,
    _settings: Settings,
) -> int:
    service = ComplianceThresholdService(factory)
    result = await service.run(
        args.thresholds,
        platforms=args.platform_list,
        policy_prefix=args.policy_prefix,
        allow_downgrade=args.allow_downgrade,
        what_if=args.what_if,
    )
    prefix = "What-if: " if result.what_if else ""
    _emit(
        f"{prefix}updated {len(result.updated)}, unchanged {len(result.unchanged)}, "
        f"not lowered {len(result.downgrades)}, failed {len(result.failed)}"
    )
    for name in result.downgrades:
        _emit(f"  NOT LOWERED {name} (use --allow-downgrade)")
    for name, error in sorted(result.failed.items()):
        _emit(f"  FAILED {name}: {error}")
    return 0 if result.succeeded else 1


async def baseline_compare(
    args: argparse.Namespace,
    factory: GraphClientFactory,
    _settings: Settings,
) -> int:
    service = BaselineComparisonService(factory)
    comparison = await service.compare_policies(args.baseline1, args.baseline2)
    written = baselines.write_report(
        comparison,
        Path(args.output_path),
        ReportFormat(args.format),
    )
    counts = ", ".join(f"{status}: {count}" for status, count in comparison.counts().items())
    _emit(f"{comparison.baseline1.name} vs {comparison.baseline2.name}: {counts}")
    for path in written:
        _emit(f"  {path}")
    return 0


async def disk_space_report(
    args: argparse.Namespace,
    factory: GraphClientFactory,
    settings: Settings,
) -> int:
    service = DiskSpaceReportService(
        DeviceQueryService(factory),
        max_concurrency=args.max_concurrency or settings.max_concurrency,
    )
    operating_system = args.operating_system
    if operating_system and operating_system.lower() == "all":
        operating_system = None
    report = await service.collect(
        thresholds=DiskThresholds(
            min_free_percent=args.min_free_percent,
            min_free_gb=args.min_free_gb,
        ),
        operating_system=operating_system,
    )
    written = disk_space.write_report(report, Path(args.output_path))
    counts = ", ".join(f"{status}: {count}" for status, count in report.counts().items())
    _emit(f"{len(report.entries)} devices ({counts}); {report.failed} could not be read")
    for path in written:
        _emit(f"  {path}")
    return 0


async def printers_provision(
    args: argparse.Namespace,
    factory: GraphClientFactory,
    _settings: Settings,
) -> int:
    service = PrinterProvisioningService(factory)
    result = await service.provision(
        share_pattern=args.share_pattern,
        name_prefix=args.name_prefix,
        group_id=args.group_id,
        filter_name=args.filter_name,
        filter_type=AssignmentFilterType(args.filter_type),
        what_if=args.what_if,
    )
    prefix = "What-if: " if result.what_if else ""
    _emit(
        f"{prefix}created {len(result.created)}, assigned {len(result.assigned)}, "
        f"already present {len(result.existing)}, failed {len(result.failed)}"
    )
    for name, error in sorted(result.failed.items()):
        _emit(f"  FAILED {name}: {error}")
    return 0 if result.succeeded else 1


__all__ = [
    "baseline_compare",
    "compliance_os_thresholds",
    "disk_space_report",
    "health_scripts_sync",
    "prepare_compliance",
    "prepare_disk_space",
    "prepare_printers",
    "printers_provision",
]
