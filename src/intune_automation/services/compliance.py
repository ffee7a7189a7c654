from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from intune_automation.data import (
    CompliancePlatform,
    CompliancePolicy,
    GraphResponseValidator,
    OperatingSystemBuildRange,
)
from intune_automation.graph.client import GraphClientFactory
from intune_automation.graph.errors import GraphAPIError
from intune_automation.graph.requests import (
    compliance_policies_request,
    compliance_policy_update_request,
)
from intune_automation.utils import get_logger


logger = get_logger(__name__)

RANGE_CEILING = 65535

VersionKey = tuple[int, ...]


def version_key(version: str) -> VersionKey:
    """Numeric sort key for a dotted version; ``10.0.9`` sorts before ``10.0.10``."""

    parts = version.strip().split(".")
    try:
        key = tuple(int(part) for part in parts)
    except ValueError:
        raise ValueError(f"Invalid version {version!r}: components must be integers") from None
    if any(part < 0 for part in key):
        raise ValueError(f"Invalid version {version!r}: components must not be negative")
    # Trailing zeros do not change the version: 10.0 == 10.0.0
    while len(key) > 1 and key[-1] == 0:
        key = key[:-1]
    return key


def release_line(version: str) -> str:
    """``major.minor.build`` of a Windows build number, zero padded."""

    parts = [str(int(part)) for part in version.strip().split(".")[:3]]
    parts.extend("0" for _ in range(3 - len(parts)))
    return ".".join(parts)


def range_ceiling(version: str) -> str:
    return f"{release_line(version)}.{RANGE_CEILING}"


def parse_platforms(value: str) -> list[CompliancePlatform]:
    platforms: list[CompliancePlatform] = []
    for item in value.split(","):
        name = item.strip().lower()
        if not name:
            continue
        try:
            platform = CompliancePlatform(name)
        except ValueError:
            choices = ", ".join(member.value for member in CompliancePlatform)
            raise ValueError(f"Unknown platform {item.strip()!r} (expected one of {choices})") from None
        if platform not in platforms:
            platforms.append(platform)
    return platforms


def parse_thresholds(items: Iterable[str]) -> dict[CompliancePlatform, list[str]]:
    """Parse ``platform=version`` items; several versions are only allowed for Windows."""

    thresholds: dict[CompliancePlatform, list[str]] = {}
    for item in items:
        platform_name, separator, version = item.partition("=")
        if not separator or not version.strip():
            raise ValueError(f"Expected platform=version, got {item!r}")
        platforms = parse_platforms(platform_name)
        if len(platforms) != 1:
            raise ValueError(f"Expected platform=version, got {item!r}")
        platform = platforms[0]
        version = version.strip()
        version_key(version)
        versions = thresholds.setdefault(platform, [])
        if version not in versions:
            versions.append(version)

    for platform, versions in thresholds.items():
        if len(versions) > 1 and platform is not CompliancePlatform.WINDOWS:
            raise ValueError(
                f"Only windows accepts more than one minimum version; got {len(versions)} for {platform}"
            )
        versions.sort(key=version_key)
    return thresholds


@dataclass(slots=True)
class ComplianceUpdate:
    policy: CompliancePolicy
    body: dict[str, Any]
    summary: str


@dataclass(slots=True)
class CompliancePlan:
    updates: list[ComplianceUpdate] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    downgrades: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ComplianceRunResult:
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    downgrades: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    what_if: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failed


def _plan_minimum(
    policy: CompliancePolicy,
    version: str,
    *,
    allow_downgrade: bool,
    plan: CompliancePlan,
) -> None:
    current = policy.os_minimum_version
    ranges = policy.valid_operating_system_build_ranges or []
    if current and not ranges and version_key(current) == version_key(version):
        plan.unchanged.append(policy.display_name)
        return

    # Existing range floors count too: a minimum below any of them admits
    # builds the ranges rejected.
    floors = [current] if current else []
    floors.extend(build_range.lowest_version for build_range in ranges)
    higher = [floor for floor in floors if version_key(floor) > version_key(version)]
    if higher and not allow_downgrade:
        logger.warning(
            "Refusing to lower OS minimum version",
            policy=policy.display_name,
            current=", ".join(higher),
            requested=version,
        )
        plan.downgrades.append(policy.display_name)
        return

    body: dict[str, Any] = {"@odata.type": policy.odata_type, "osMinimumVersion": version}
    if ranges:
        body["validOperatingSystemBuildRanges"] = []
    plan.updates.append(
        ComplianceUpdate(
            policy=policy,
            body=body,
            summary=f"osMinimumVersion {current or '(none)'} -> {version}",
        )
    )


def _plan_ranges(
    policy: CompliancePolicy,
    versions: Sequence[str],
    *,
    allow_downgrade: bool,
    plan: CompliancePlan,
) -> None:
    existing = {
        release_line(build_range.lowest_version): build_range.lowest_version
        for build_range in policy.valid_operating_system_build_ranges or []
    }
    minimum = policy.os_minimum_version
    if minimum:
        minimum_line = release_line(minimum)
        held = existing.get(minimum_line)
        if held is None or version_key(minimum) > version_key(held):
            existing[minimum_line] = minimum

    targets: list[OperatingSystemBuildRange] = []
    for version in versions:
        line = release_line(version)
        lowest = version
        current = existing.get(line)
        if minimum and version_key(range_ceiling(version)) < version_key(minimum):
            # The whole line sits below the current minimum and would be newly admitted.
            if not allow_downgrade:
                logger.warning(
                    "Refusing to admit builds below the OS minimum version",
                    policy=policy.display_name,
                    line=line,
                    current=minimum,
                    requested=version,
                )
                plan.downgrades.append(policy.display_name)
                return
        elif (
            current is not None
            and version_key(current) > version_key(version)
            and not allow_downgrade
        ):
            logger.warning(
                "Keeping higher build range floor",
                policy=policy.display_name,
                line=line,
                current=current,
                requested=version,
            )
            lowest = current
        targets.append(
            OperatingSystemBuildRange(
                lowest_version=lowest,
                highest_version=range_ceiling(version),
                description=f"Windows {line}",
            )
        )

    current_pairs = sorted(
        (version_key(r.lowest_version), version_key(r.highest_version))
        for r in policy.valid_operating_system_build_ranges or []
    )
    target_pairs = sorted(
        (version_key(r.lowest_version), version_key(r.highest_version)) for r in targets
    )
    if current_pairs == target_pairs and not policy.os_minimum_version:
        plan.unchanged.append(policy.display_name)
        return

    plan.updates.append(
        ComplianceUpdate(
            policy=policy,
            body={
                "@odata.type": policy.odata_type,
                "osMinimumVersion": None,
                "validOperatingSystemBuildRanges": [r.to_graph() for r in targets],
            },
            summary="validOperatingSystemBuildRanges -> "
            + ", ".join(f"{r.lowest_version}-{r.highest_version}" for r in targets),
        )
    )


def plan_updates(
    policies: Iterable[CompliancePolicy],
    thresholds: Mapping[CompliancePlatform, Sequence[str]],
    *,
    policy_prefix: str | None = None,
    allow_downgrade: bool = False,
) -> CompliancePlan:
    """Work out the PATCH body for every policy whose OS floor must move."""

    plan = CompliancePlan()
    prefix = policy_prefix.casefold() if policy_prefix else None
    for policy in policies:
        platform = policy.platform
        if platform is None or platform not in thresholds:
            continue
        if prefix and not policy.display_name.casefold().startswith(prefix):
            continue
        versions = sorted(thresholds[platform], key=version_key)
        if not versions:
            continue
        if platform is CompliancePlatform.WINDOWS and len(versions) > 1:
            _plan_ranges(policy, versions, allow_downgrade=allow_downgrade, plan=plan)
        else:
            _plan_minimum(policy, versions[-1], allow_downgrade=allow_downgrade, plan=plan)
    return plan


class ComplianceThresholdService:
    """Raise the minimum OS version of compliance policies per platform."""

    def __init__(self, client_factory: GraphClientFactory) -> None:
        self._client_factory = client_factory
        self._validator = GraphResponseValidator("deviceCompliancePolicies")

    async def list_policies(
        self,
        platforms: Iterable[CompliancePlatform] | None = None,
    ) -> list[CompliancePolicy]:
        wanted = set(platforms) if platforms is not None else None
        self._validator.reset()
        policies: list[CompliancePolicy] = []
        async for item in self._client_factory.iter_request(compliance_policies_request()):
            policy = self._validator.parse(CompliancePolicy, item)
            if policy is None:
                continue
            if policy.platform is None:
                logger.debug(
                    "Ignoring compliance policy for unsupported platform",
                    policy=policy.display_name,
                    odata_type=policy.odata_type,
                )
                continue
            if wanted is None or policy.platform in wanted:
                policies.append(policy)
        logger.info("Listed compliance policies", count=len(policies))
        return policies

    async def apply(
        self,
        plan: CompliancePlan,
        *,
        what_if: bool = False,
    ) -> ComplianceRunResult:
        result = ComplianceRunResult(
            unchanged=list(plan.unchanged),
            downgrades=list(plan.downgrades),
            what_if=what_if,
        )
        for update in plan.updates:
            name = update.policy.display_name
            if what_if:
                logger.info("What-if: would update compliance policy", policy=name, change=update.summary)
                result.updated.append(name)
                continue
            try:
                await self._client_factory.execute(
                    compliance_policy_update_request(update.policy.id, update.body)
                )
            except GraphAPIError as exc:
                logger.error("Failed to update compliance policy", policy=name, error=str(exc))
                result.failed[name] = str(exc)
                continue
            logger.info("Updated compliance policy", policy=name, change=update.summary)
            result.updated.append(name)
        return result

    async def run(
        self,
        thresholds: Mapping[CompliancePlatform, Sequence[str]],
        *,
        platforms: Iterable[CompliancePlatform] | None = None,
        policy_prefix: str | None = None,
        allow_downgrade: bool = False,
        what_if: bool = False,
    ) -> ComplianceRunResult:
        selected = list(platforms) if platforms is not None else list(thresholds)
        missing = [platform for platform in selected if platform not in thresholds]
        if missing:
            raise ValueError(
                "No minimum version given for: " + ", ".join(str(platform) for platform in missing)
            )
        scoped = {platform: thresholds[platform] for platform in selected}
        policies = await self.list_policies(scoped)
        plan = plan_updates(
            policies,
            scoped,
            policy_prefix=policy_prefix,
            allow_downgrade=allow_downgrade,
        )
        result = await self.apply(plan, what_if=what_if)
        logger.info(
            "Compliance threshold run finished",
            updated=len(result.updated),
            unchanged=len(result.unchanged),
            downgrades=len(result.downgrades),
            failed=len(result.failed),
            what_if=what_if,
        )
        return result


__all__ = [
    "RANGE_CEILING",
    "CompliancePlan",
    "ComplianceRunResult",
    "ComplianceThresholdService",
    "ComplianceUpdate",
    "parse_platforms",
    "parse_thresholds",
    "plan_updates",
    "range_ceiling",
    "release_line",
    "version_key",
]
