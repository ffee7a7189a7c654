from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Sequence

from intune_automation import __version__
from intune_automation.bootstrap import build_client_factory, load_settings
from intune_automation.cli import auth_commands, graph_commands, probe_commands
from intune_automation.probes import DEFAULT_RIGHT, MatchMode, RegistryHive, RegistryValueType
from intune_automation.reports import ReportFormat
from intune_automation.services.disk_space import DEFAULT_MIN_FREE_GB, DEFAULT_MIN_FREE_PERCENT
from intune_automation.services.printers import DEFAULT_NAME_PREFIX
from intune_automation.utils import LoggingOptions, configure_logging, get_logger
from intune_automation.utils.errors import describe_exception


PROG = "intune-automation"


def _add_what_if(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--what-if",
        action="store_true",
        help="Log what would change without writing to Intune",
    )


def _add_health_scripts(subparsers: argparse._SubParsersAction) -> None:
    group = subparsers.add_parser("health-scripts", help="Device health scripts (proactive remediations)")
    commands = group.add_subparsers(dest="action", required=True)
    sync = commands.add_parser("sync", help="Create or update health scripts from a folder")
    sync.add_argument(
        "--scripts-folder",
        type=Path,
        default=Path("RemediationScripts"),
        help="Folder with one sub-directory per script (default: ./RemediationScripts)",
    )
    sync.add_argument("--force", action="store_true", help="Update scripts even when unchanged")
    _add_what_if(sync)
    sync.set_defaults(handler=graph_commands.health_scripts_sync, needs_graph=True)


def _add_compliance(subparsers: argparse._SubParsersAction) -> None:
    group = subparsers.add_parser("compliance", help="Compliance policy maintenance")
    commands = group.add_subparsers(dest="action", required=True)
    thresholds = commands.add_parser(
        "os-thresholds",
        help="Raise the minimum OS version of compliance policies",
    )
    thresholds.add_argument(
        "--platforms",
        help="Comma separated platforms to touch (windows, ios, macos, android)",
    )
    thresholds.add_argument(
        "--min-version",
        action="append",
        required=True,
        metavar="PLATFORM=VERSION",
        help="Minimum version per platform; repeat windows=... once per release line",
    )
    thresholds.add_argument("--policy-prefix", help="Only policies whose name starts with this")
    thresholds.add_argument(
        "--allow-downgrade",
        action="store_true",
        help="Allow lowering a policy's current minimum",
    )
    _add_what_if(thresholds)
    thresholds.set_defaults(
        handler=graph_commands.compliance_os_thresholds,
        prepare=graph_commands.prepare_compliance,
        needs_graph=True,
    )


def _add_baseline(subparsers: argparse._SubParsersAction) -> None:
    group = subparsers.add_parser("baseline", help="Security baseline tooling")
    commands = group.add_subparsers(dest="action", required=True)
    compare = commands.add_parser("compare", help="Compare two baselines setting by setting")
    compare.add_argument("--baseline1", required=True, help="Policy id or exact name")
    compare.add_argument("--baseline2", required=True, help="Policy id or exact name")
    compare.add_argument("--output-path", type=Path, default=Path("."))
    compare.add_argument(
        "--format",
        choices=[fmt.value for fmt in ReportFormat],
        default=ReportFormat.BOTH.value,
    )
    compare.set_defaults(handler=graph_commands.baseline_compare, needs_graph=True)


def _add_disk_space(subparsers: argparse._SubParsersAction) -> None:
    group = subparsers.add_parser("disk-space", help="Device storage reporting")
    commands = group.add_subparsers(dest="action", required=True)
    report = commands.add_parser("report", help="Report devices low on disk space")
    report.add_argument("--output-path", type=Path, default=Path("."))
    report.add_argument("--min-free-percent", type=float, default=DEFAULT_MIN_FREE_PERCENT)
    report.add_argument("--min-free-gb", type=float, default=DEFAULT_MIN_FREE_GB)
    report.add_argument(
        "--max-concurrency",
        type=int,
        help="Parallel device requests (default: INTUNE_AUTOMATION_MAX_CONCURRENCY or 8)",
    )
    report.add_argument(
        "--operating-system",
        default="Windows",
        help="managedDevices operatingSystem to include, or 'all'",
    )
    report.set_defaults(
        handler=graph_commands.disk_space_report,
        prepare=graph_commands.prepare_disk_space,
        needs_graph=True,
    )


def _add_printers(subparsers: argparse._SubParsersAction) -> None:
    group = subparsers.add_parser("printers", help="Universal Print provisioning")
    commands = group.add_subparsers(dest="action", required=True)
    provision = commands.add_parser(
        "provision",
        help="Create a settings catalog policy per printer share",
    )
    provision.add_argument("--share-pattern", default="*", help="Glob on the share name")
    provision.add_argument("--name-prefix", default=DEFAULT_NAME_PREFIX)
    provision.add_argument("--group-id", help="Entra group to assign new policies to")
    provision.add_argument("--filter-name", help="Assignment filter display name")
    provision.add_argument("--filter-type", choices=["include", "exclude"], default="include")
    _add_what_if(provision)
    provision.set_defaults(
        handler=graph_commands.printers_provision,
        prepare=graph_commands.prepare_printers,
        needs_graph=True,
    )


def _add_auth(subparsers: argparse._SubParsersAction) -> None:
    group = subparsers.add_parser("auth", help="Client secret storage in the OS keyring")
    commands = group.add_subparsers(dest="action", required=True)

    store = commands.add_parser("store-secret", help="Save the app registration client secret")
    store.add_argument("--client-id", help="Defaults to INTUNE_AUTOMATION_CLIENT_ID")
    store.add_argument(
        "--secret-stdin",
        action="store_true",
        help="Read the secret from stdin instead of prompting",
    )
    store.set_defaults(handler=auth_commands.store_secret)

    forget = commands.add_parser("forget-secret", help="Remove the stored client secret")
    forget.add_argument("--client-id", help="Defaults to INTUNE_AUTOMATION_CLIENT_ID")
    forget.set_defaults(handler=auth_commands.forget_secret)


def _add_probes(subparsers: argparse._SubParsersAction) -> None:
    group = subparsers.add_parser("probe", help="Detection/remediation probes run on the device")
    commands = group.add_subparsers(dest="action", required=True)

    registry = commands.add_parser("registry", help="Check or set a registry value")
    registry.add_argument("--hive", choices=[hive.value for hive in RegistryHive], default="HKLM")
    registry.add_argument("--key", required=True)
    registry.add_argument("--name", required=True)
    registry.add_argument(
        "--value",
        action="append",
        required=True,
        help="Expected value; repeat for REG_MULTI_SZ",
    )
    registry.add_argument(
        "--type",
        choices=[value_type.name for value_type in RegistryValueType],
        default=RegistryValueType.REG_SZ.name,
    )
    registry.add_argument("--remediate", action="store_true")
    registry.set_defaults(
        handler=probe_commands.probe_registry,
        prepare=probe_commands.prepare_registry,
    )

    logon = commands.add_parser("logon-right", help="Ensure the primary user holds a user right")
    logon.add_argument("--right", default=DEFAULT_RIGHT)
    logon.add_argument("--sid", help="Use this SID instead of detecting the primary user")
    logon.add_argument("--extra-sid", action="append", help="Additional SID to grant")
    logon.add_argument("--remediate", action="store_true")
    logon.set_defaults(handler=probe_commands.probe_logon_right)

    files = commands.add_parser("file", help="Check that files exist")
    files.add_argument("--path", action="append", required=True, help="Path or glob; repeatable")
    files.add_argument("--mode", choices=[mode.value for mode in MatchMode], default="all")
    files.add_argument("--min-size", type=int, help="Minimum size in bytes")
    files.set_defaults(handler=probe_commands.probe_file)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Administrative automations for Microsoft Intune.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--graph-token",
        help="Bearer token for Microsoft Graph (default: GRAPH_TOKEN or client credentials)",
    )
    parser.add_argument("--env-file", type=Path, help="Settings file to load")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, help="Write the log file here")
    parser.set_defaults(needs_graph=False, prepare=None)

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_health_scripts(subparsers)
    _add_compliance(subparsers)
    _add_baseline(subparsers)
    _add_disk_space(subparsers)
    _add_printers(subparsers)
    _add_probes(subparsers)
    _add_auth(subparsers)
    return parser


async def _run_graph(args: argparse.Namespace) -> int:
    settings = load_settings(args.env_file)
    async with build_client_factory(settings, graph_token=args.graph_token) as factory:
        return await args.handler(args, factory, settings)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.prepare is not None:
        try:
            args.prepare(args)
        except ValueError as exc:
            parser.error(str(exc))

    configure_logging(
        LoggingOptions(
            level="DEBUG" if args.verbose else "INFO",
            debug=args.verbose,
            log_path=args.log_file,
            # Probes run under the Intune agent; only keep a file when asked.
            file_sink=args.needs_graph or args.log_file is not None,
        )
    )
    logger = get_logger(__name__)
    command = " ".join(part for part in (args.command, getattr(args, "action", None)) if part)
    logger.debug("Starting command", command=command)

    try:
        if args.needs_graph:
            return asyncio.run(_run_graph(args))
        return args.handler(args)
    except KeyboardInterrupt:
        logger.warning("Interrupted", command=command)
        return 1
    except Exception as exc:  # noqa: BLE001 - every failure becomes exit code 1
        logger.exception("Command failed", command=command)
        descriptor = describe_exception(exc)
        print(f"{descriptor.headline} {descriptor.detail}", file=sys.stderr)
        if descriptor.suggestion:
            print(f"Suggestion: {descriptor.suggestion}", file=sys.stderr)
        if descriptor.reproduction:
            print(f"Reproduce with: {descriptor.reproduction}", file=sys.stderr)
        if args.command == "probe":
            # Intune only surfaces stdout for probes.
            print(f"{descriptor.headline} {descriptor.detail}", flush=True)
        return 1


__all__ = ["PROG", "build_parser", "main"]
