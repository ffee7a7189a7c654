"""Sub-commands that run on the managed device itself."""

from __future__ import annotations

import argparse
from typing import Callable

from intune_automation.probes import (
    FilePresenceProbe,
    LogonRightProbe,
    MatchMode,
    ProbeError,
    ProbeResult,
    RegistryBackend,
    RegistryHive,
    RegistryValueProbe,
    RegistryValueType,
    SeceditRunner,
    SubprocessSecedit,
    WinRegBackend,
    coerce_value,
)
from intune_automation.utils import get_logger


logger = get_logger(__name__)

# Swapped out in tests; the real backends need Windows.
registry_backend_factory: Callable[[], RegistryBackend] = WinRegBackend
secedit_factory: Callable[[], SeceditRunner] = SubprocessSecedit


def _report(result: ProbeResult) -> int:
    # Intune shows the last line of stdout in the remediation report.
    print(result.message, flush=True)
    return result.exit_code


def _run(action: Callable[[], ProbeResult]) -> int:
    try:
        return _report(action())
    except ProbeError as exc:
        logger.error("Probe could not complete", error=str(exc))
        return _report(ProbeResult(False, str(exc)))


def prepare_registry(args: argparse.Namespace) -> None:
    value_type = RegistryValueType[args.type]
    args.expected = coerce_value(args.value, value_type)


def probe_registry(args: argparse.Namespace) -> int:
    def action() -> ProbeResult:
        probe = RegistryValueProbe(
            registry_backend_factory(),
            hive=RegistryHive(args.hive),
            key=args.key,
            name=args.name,
            expected=args.expected,
            value_type=RegistryValueType[args.type],
        )
        return probe.remediate() if args.remediate else probe.detect()

    return _run(action)


def probe_logon_right(args: argparse.Namespace) -> int:
    def action() -> ProbeResult:
        probe = LogonRightProbe(
            registry_backend_factory(),
            secedit_factory(),
            right=args.right,
            sid=args.sid,
            extra_sids=args.extra_sid or (),
        )
        return probe.remediate() if args.remediate else probe.detect()

    return _run(action)


def probe_file(args: argparse.Namespace) -> int:
    probe = FilePresenceProbe(args.path, mode=MatchMode(args.mode), min_size=args.min_size)
    return _run(probe.detect)


__all__ = [
    "prepare_registry",
    "probe_file",
    "probe_logon_right",
    "probe_registry",
    "registry_backend_factory",
    "secedit_factory",
]
