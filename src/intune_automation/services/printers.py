from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from typing import Any

from intune_automation.data import (
    AssignmentFilter,
    AssignmentFilterType,
    ConfigurationPolicy,
    GraphResponseValidator,
    PrinterShare,
)
from intune_automation.graph.client import GraphClientFactory
from intune_automation.graph.errors import GraphAPIError
from intune_automation.graph.requests import (
    assignment_filters_request,
    configuration_policies_request,
    configuration_policy_assign_request,
    configuration_policy_create_request,
    print_shares_request,
)
from intune_automation.utils import get_logger


logger = get_logger(__name__)

DEFAULT_NAME_PREFIX = "Printer - "
SETTING_ROOT = "user_vendor_msft_printerprovisioning_upprinterinstalls_{printersharedid}"

_SETTING = "#microsoft.graph.deviceManagementConfigurationSetting"
_GROUP_COLLECTION = "#microsoft.graph.deviceManagementConfigurationGroupSettingCollectionInstance"
_SIMPLE = "#microsoft.graph.deviceManagementConfigurationSimpleSettingInstance"
_STRING_VALUE = "#microsoft.graph.deviceManagementConfigurationStringSettingValue"
_CHOICE = "#microsoft.graph.deviceManagementConfigurationChoiceSettingInstance"
_CHOICE_VALUE = "#microsoft.graph.deviceManagementConfigurationChoiceSettingValue"
_GROUP_TARGET = "#microsoft.graph.groupAssignmentTarget"


class AssignmentFilterNotFoundError(LookupError):
    pass


@dataclass(slots=True)
class PrinterProvisionResult:
    created: list[str] = field(default_factory=list)
    assigned: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    what_if: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failed


def policy_name(share: PrinterShare, prefix: str = DEFAULT_NAME_PREFIX) -> str:
    return f"{prefix}{share.display_name}"


def _string_setting(definition_id: str, value: str) -> dict[str, Any]:
    return {
        "@odata.type": _SIMPLE,
        "settingDefinitionId": definition_id,
        "simpleSettingValue": {"@odata.type": _STRING_VALUE, "value": value},
    }


def build_policy_body(share: PrinterShare, name: str) -> dict[str, Any]:
    """Settings-catalog policy installing one Universal Print share for users."""

    if share.printer is None:
        raise ValueError(f"Share {share.display_name!r} has no printer expanded")
    return {
        "name": name,
        "description": f"Installs the Universal Print share {share.display_name}",
        "platforms": "windows10",
        "technologies": "mdm",
        "roleScopeTagIds": ["0"],
        "settings": [
            {
                "@odata.type": _SETTING,
                "settingInstance": {
                    "@odata.type": _GROUP_COLLECTION,
                    "settingDefinitionId": SETTING_ROOT,
                    "groupSettingCollectionValue": [
                        {
                            "children": [
                                _string_setting(f"{SETTING_ROOT}_clouddeviceid", share.printer.id),
                                {
                                    "@odata.type": _CHOICE,
                                    "settingDefinitionId": f"{SETTING_ROOT}_install",
                                    "choiceSettingValue": {
                                        "@odata.type": _CHOICE_VALUE,
                                        "value": f"{SETTING_ROOT}_install_true",
                                        "children": [],
                                    },
                                },
                                _string_setting(f"{SETTING_ROOT}_printersharedid", share.id),
                                _string_setting(
                                    f"{SETTING_ROOT}_printersharedname", share.display_name
                                ),
                            ]
                        }
                    ],
                },
            }
        ],
    }


def build_assignment(
    group_id: str,
    assignment_filter: AssignmentFilter | None = None,
    filter_type: AssignmentFilterType = AssignmentFilterType.INCLUDE,
) -> dict[str, Any]:
    target: dict[str, Any] = {"@odata.type": _GROUP_TARGET, "groupId": group_id}
    if assignment_filter is not None:
        target["deviceAndAppManagementAssignmentFilterId"] = assignment_filter.id
        target["deviceAndAppManagementAssignmentFilterType"] = str(filter_type)
    else:
        target["deviceAndAppManagementAssignmentFilterType"] = "none"
    return {"target": target}


class PrinterProvisioningService:
    """Create one settings-catalog policy per Universal Print share and assign it."""

    def __init__(self, client_factory: GraphClientFactory) -> None:
        self._client_factory = client_factory

    async def list_shares(self, pattern: str = "*") -> list[PrinterShare]:
        validator = GraphResponseValidator("print/shares")
        needle = pattern.casefold()
        shares: list[PrinterShare] = []
        async for item in self._client_factory.iter_request(print_shares_request()):
            share = validator.parse(PrinterShare, item)
            if share is not None and fnmatch.fnmatchcase(share.display_name.casefold(), needle):
                shares.append(share)
        shares.sort(key=lambda share: share.display_name.casefold())
        logger.info("Listed printer shares", pattern=pattern, count=len(shares))
        return shares

    async def existing_policy_names(self) -> set[str]:
        validator = GraphResponseValidator("configurationPolicies")
        names: set[str] = set()
        async for item in self._client_factory.iter_request(
            configuration_policies_request(select=("id", "name"))
        ):
            policy = validator.parse(ConfigurationPolicy, item)
            if policy is not None:
                names.add(policy.name.casefold())
        return names

    async def resolve_filter(self, name: str) -> AssignmentFilter:
        validator = GraphResponseValidator("assignmentFilters")
        async for item in self._client_factory.iter_request(assignment_filters_request()):
            assignment_filter = validator.parse(AssignmentFilter, item)
            if assignment_filter is not None and assignment_filter.is_named(name):
                return assignment_filter
        raise AssignmentFilterNotFoundError(f"Assignment filter {name!r} not found")

    async def provision(
        self,
        *,
        share_pattern: str = "*",
        name_prefix: str = DEFAULT_NAME_PREFIX,
        group_id: str | None = None,
        filter_name: str | None = None,
        filter_type: AssignmentFilterType = AssignmentFilterType.INCLUDE,
        what_if: bool = False,
    ) -> PrinterProvisionResult:
        if filter_name and not group_id:
            raise ValueError("An assignment filter needs a group to assign to")

        # Resolved up front so a typo fails before anything is created.
        assignment_filter = await self.resolve_filter(filter_name) if filter_name else None

        result = PrinterProvisionResult(what_if=what_if)
        shares = await self.list_shares(share_pattern)
        existing = await self.existing_policy_names()

        for share in shares:
            name = policy_name(share, name_prefix)
            if name.casefold() in existing:
                logger.info("Printer policy already exists", policy=name)
                result.existing.append(name)
                continue
            if share.printer is None:
                logger.warning("Printer share has no printer; skipping", share=share.display_name)
                result.failed[name] = "share has no printer"
                continue

            body = build_policy_body(share, name)
            if what_if:
                logger.info("What-if: would create printer policy", policy=name, group=group_id)
                result.created.append(name)
                if group_id:
                    result.assigned.append(name)
                continue

            try:
                created = await self._client_factory.execute(
                    configuration_policy_create_request(body)
                )
            except GraphAPIError as exc:
                logger.error("Failed to create printer policy", policy=name, error=str(exc))
                result.failed[name] = str(exc)
                continue
            policy_id = created.get("id")
            logger.info("Created printer policy", policy=name, id=policy_id)
            result.created.append(name)
            existing.add(name.casefold())

            if not group_id or not policy_id:
                continue
            try:
                await self._client_factory.execute(
                    configuration_policy_assign_request(
                        policy_id,
                        [build_assignment(group_id, assignment_filter, filter_type)],
                    )
                )
            except GraphAPIError as exc:
                logger.error("Failed to assign printer policy", policy=name, error=str(exc))
                result.failed[name] = str(exc)
                continue
            logger.info(
                "Assigned printer policy",
                policy=name,
                group=group_id,
                filter=assignment_filter.display_name if assignment_filter else None,
            )
            result.assigned.append(name)

        logger.info(
            "Printer provisioning finished",
            created=len(result.created),
            assigned=len(result.assigned),
            existing=len(result.existing),
            failed=len(result.failed),
            what_if=what_if,
        )
        return result


__all__ = [
    "DEFAULT_NAME_PREFIX",
    "SETTING_ROOT",
    "AssignmentFilterNotFoundError",
    "PrinterProvisionResult",
    "PrinterProvisioningService",
    "build_assignment",
    "build_policy_body",
    "policy_name",
]
