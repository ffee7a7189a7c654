from __future__ import annotations

import base64
import fnmatch
import json
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import ConfigDict, Field, ValidationError

from intune_automation.data import (
    HEALTH_SCRIPT_ODATA_TYPE,
    DeviceHealthScript,
    GraphBaseModel,
    GraphResponseValidator,
    RunAsAccount,
)
from intune_automation.graph.client import GraphClientFactory
from intune_automation.graph.errors import GraphAPIError
from intune_automation.graph.requests import (
    health_script_create_request,
    health_script_request,
    health_script_update_request,
    health_scripts_request,
)
from intune_automation.utils import get_logger


logger = get_logger(__name__)

DETECTION_PATTERN = "detect*.ps1"
REMEDIATION_PATTERN = "remediat*.ps1"
METADATA_FILE = "metadata.json"


class HealthScriptMetadata(GraphBaseModel):
    """Optional ``metadata.json`` beside the scripts of a package."""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        extra="forbid",
        frozen=True,
    )

    description: str = ""
    publisher: str = ""
    run_as_account: RunAsAccount = Field(default=RunAsAccount.SYSTEM, alias="runAsAccount")
    run_as_32_bit: bool = Field(default=False, alias="runAs32Bit")
    enforce_signature_check: bool = Field(default=False, alias="enforceSignatureCheck")
    role_scope_tag_ids: list[str] = Field(
        default_factory=lambda: ["0"], alias="roleScopeTagIds"
    )


@dataclass(slots=True)
class HealthScriptPackage:
    """A local detection/remediation pair, named after its directory."""

    name: str
    path: Path
    detection_script: bytes
    remediation_script: bytes | None = None
    metadata: HealthScriptMetadata = field(default_factory=HealthScriptMetadata)


class SyncAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    UNCHANGED = "unchanged"


@dataclass(slots=True)
class PlannedChange:
    package: HealthScriptPackage
    action: SyncAction
    remote_id: str | None = None
    body: dict[str, Any] | None = None


@dataclass(slots=True)
class HealthScriptSyncResult:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    what_if: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failed


class HealthScriptPackageError(ValueError):
    """A package directory exists but cannot be turned into a health script."""


def _single_match(directory: Path, pattern: str) -> Path | None:
    # Case-insensitive on every platform: Detect.ps1 and detect.ps1 are the same script.
    matches = sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and fnmatch.fnmatchcase(path.name.lower(), pattern)
    )
    if len(matches) > 1:
        raise HealthScriptPackageError(
            f"{directory.name}: more than one file matches {pattern}: "
            + ", ".join(path.name for path in matches)
        )
    return matches[0] if matches else None


def load_package(directory: Path) -> HealthScriptPackage | None:
    """Read one package directory; ``None`` when it has no detection script."""

    detection = _single_match(directory, DETECTION_PATTERN)
    if detection is None:
        return None
    remediation = _single_match(directory, REMEDIATION_PATTERN)

    metadata = HealthScriptMetadata()
    metadata_path = directory / METADATA_FILE
    if metadata_path.is_file():
        try:
            raw = json.loads(metadata_path.read_text(encoding="utf-8-sig"))
            metadata = HealthScriptMetadata.model_validate(raw)
        except (ValueError, ValidationError) as exc:
            raise HealthScriptPackageError(
                f"{directory.name}: invalid {METADATA_FILE}: {exc}"
            ) from exc

    return HealthScriptPackage(
        name=directory.name,
        path=directory,
        detection_script=detection.read_bytes(),
        remediation_script=remediation.read_bytes() if remediation else None,
        metadata=metadata,
    )


def load_packages(folder: Path) -> tuple[list[HealthScriptPackage], list[str]]:
    """Load every package under ``folder``; returns packages and skipped directory names."""

    if not folder.is_dir():
        raise FileNotFoundError(f"Scripts folder not found: {folder}")

    packages: list[HealthScriptPackage] = []
    skipped: list[str] = []
    for directory in sorted(path for path in folder.iterdir() if path.is_dir()):
        package = load_package(directory)
        if package is None:
            logger.warning(
                "Skipping folder without detection script",
                folder=directory.name,
                pattern=DETECTION_PATTERN,
            )
            skipped.append(directory.name)
            continue
        packages.append(package)
    logger.info("Loaded health script packages", folder=str(folder), count=len(packages))
    return packages, skipped


def _encode(content: bytes | None) -> str:
    return base64.b64encode(content or b"").decode("ascii")


def build_payload(package: HealthScriptPackage, *, for_create: bool = False) -> dict[str, Any]:
    """Graph body for a package; identical input always yields an identical body."""

    metadata = package.metadata
    body: dict[str, Any] = {
        "displayName": package.name,
        "description": metadata.description,
        "publisher": metadata.publisher,
        "runAsAccount": metadata.run_as_account,
        "runAs32Bit": metadata.run_as_32_bit,
        "enforceSignatureCheck": metadata.enforce_signature_check,
        "detectionScriptContent": _encode(package.detection_script),
        "remediationScriptContent": _encode(package.remediation_script),
        "roleScopeTagIds": list(metadata.role_scope_tag_ids),
    }
    if for_create:
        body = {"@odata.type": HEALTH_SCRIPT_ODATA_TYPE, **body}
    return body


def differences(package: HealthScriptPackage, remote: DeviceHealthScript) -> list[str]:
    """Names of the fields where the local package and the remote script disagree."""

    metadata = package.metadata
    changed: list[str] = []
    if (remote.detection_script or b"") != package.detection_script:
        changed.append("detectionScriptContent")
    if (remote.remediation_script or b"") != (package.remediation_script or b""):
        changed.append("remediationScriptContent")
    if (remote.description or "") != metadata.description:
        changed.append("description")
    if (remote.publisher or "") != metadata.publisher:
        changed.append("publisher")
    if (remote.run_as_account or RunAsAccount.SYSTEM) != metadata.run_as_account:
        changed.append("runAsAccount")
    if bool(remote.run_as_32_bit) != metadata.run_as_32_bit:
        changed.append("runAs32Bit")
    if bool(remote.enforce_signature_check) != metadata.enforce_signature_check:
        changed.append("enforceSignatureCheck")
    if remote.role_scope_tag_ids is not None and sorted(remote.role_scope_tag_ids) != sorted(
        metadata.role_scope_tag_ids
    ):
        changed.append("roleScopeTagIds")
    return changed


def plan(
    packages: Iterable[HealthScriptPackage],
    remote: Mapping[str, DeviceHealthScript],
    *,
    force: bool = False,
) -> list[PlannedChange]:
    """Decide create/update/unchanged for each package.

    ``remote`` is keyed by case-folded display name and must hold scripts
    fetched by id, i.e. including their content.
    """

    changes: list[PlannedChange] = []
    for package in packages:
        existing = remote.get(package.name.casefold())
        if existing is None:
            changes.append(
                PlannedChange(
                    package=package,
                    action=SyncAction.CREATE,
                    body=build_payload(package, for_create=True),
                )
            )
            continue

        changed = differences(package, existing)
        if changed or force:
            changes.append(
                PlannedChange(
                    package=package,
                    action=SyncAction.UPDATE,
                    remote_id=existing.id,
                    body=build_payload(package),
                )
            )
            logger.debug(
                "Health script differs from Intune",
                name=package.name,
                fields=changed or ["forced"],
            )
        else:
            changes.append(
                PlannedChange(
                    package=package,
                    action=SyncAction.UNCHANGED,
                    remote_id=existing.id,
                )
            )
    return changes


class HealthScriptSyncService:
    """Keep Intune device health scripts in line with a folder of script packages."""

    def __init__(self, client_factory: GraphClientFactory) -> None:
        self._client_factory = client_factory
        self._validator = GraphResponseValidator("deviceHealthScripts")
        self._unreadable_names: set[str] = set()

    async def list_remote(self) -> dict[str, DeviceHealthScript]:
        """Remote scripts keyed by case-folded display name (content not included).

        Names of scripts that failed validation are remembered so that sync
        never creates a second script beside one it could not read.
        """

        self._validator.reset()
        self._unreadable_names.clear()
        scripts: dict[str, DeviceHealthScript] = {}
        async for item in self._client_factory.iter_request(health_scripts_request()):
            script = self._validator.parse(DeviceHealthScript, item)
            if script is None:
                name = item.get("displayName")
                if isinstance(name, str) and name:
                    self._unreadable_names.add(name.casefold())
                continue
            key = script.display_name.casefold()
            if key in scripts:
                logger.warning(
                    "Duplicate health script name in Intune; keeping the first",
                    name=script.display_name,
                    kept=scripts[key].id,
                    ignored=script.id,
                )
                continue
            scripts[key] = script
        logger.info("Listed Intune health scripts", count=len(scripts))
        return scripts

    async def fetch_script(self, script_id: str) -> DeviceHealthScript:
        payload = await self._client_factory.execute(health_script_request(script_id))
        return DeviceHealthScript.from_graph(payload)

    async def sync(
        self,
        folder: Path,
        *,
        force: bool = False,
        what_if: bool = False,
    ) -> HealthScriptSyncResult:
        packages, skipped = load_packages(folder)
        result = HealthScriptSyncResult(skipped=skipped, what_if=what_if)

        summaries = await self.list_remote()
        detailed: dict[str, DeviceHealthScript] = {}
        comparable: list[HealthScriptPackage] = []
        for package in packages:
            summary = summaries.get(package.name.casefold())
            if summary is None:
                if package.name.casefold() in self._unreadable_names:
                    logger.error(
                        "Intune holds a health script with this name that could not be read",
                        name=package.name,
                    )
                    result.failed[package.name] = (
                        "An existing Intune health script with this name could not be read; "
                        "not creating a duplicate"
                    )
                    continue
                comparable.append(package)
                continue
            try:
                detailed[summary.display_name.casefold()] = await self.fetch_script(summary.id)
            except GraphAPIError as exc:
                logger.error(
                    "Failed to read health script from Intune",
                    name=package.name,
                    id=summary.id,
                    error=str(exc),
                )
                result.failed[package.name] = str(exc)
                continue
            comparable.append(package)

        for change in plan(comparable, detailed, force=force):
            await self._apply(change, result)

        logger.info(
            "Health script sync finished",
            created=len(result.created),
            updated=len(result.updated),
            unchanged=len(result.unchanged),
            skipped=len(result.skipped),
            failed=len(result.failed),
            what_if=what_if,
        )
        return result

    async def _apply(self, change: PlannedChange, result: HealthScriptSyncResult) -> None:
        name = change.package.name
        if change.action is SyncAction.UNCHANGED:
            logger.info("Health script unchanged", name=name, id=change.remote_id)
            result.unchanged.append(name)
            return

        if result.what_if:
            logger.info("What-if: would apply health script", name=name, action=change.action)
        else:
            assert change.body is not None
            try:
                if change.action is SyncAction.CREATE:
                    created = await self._client_factory.execute(
                        health_script_create_request(change.body)
                    )
                    logger.info("Created health script", name=name, id=created.get("id"))
                else:
                    assert change.remote_id is not None
                    await self._client_factory.execute(
                        health_script_update_request(change.remote_id, change.body)
                    )
                    logger.info("Updated health script", name=name, id=change.remote_id)
            except GraphAPIError as exc:
                logger.error(
                    "Failed to apply health script",
                    name=name,
                    action=change.action,
                    error=str(exc),
                )
                result.failed[name] = str(exc)
                return

        if change.action is SyncAction.CREATE:
            result.created.append(name)
        else:
            result.updated.append(name)


__all__ = [
    "HealthScriptMetadata",
    "HealthScriptPackage",
    "HealthScriptPackageError",
    "HealthScriptSyncResult",
    "HealthScriptSyncService",
    "PlannedChange",
    "SyncAction",
    "build_payload",
    "differences",
    "load_package",
    "load_packages",
    "plan",
]
