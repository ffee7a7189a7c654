from __future__ import annotations

import pytest

from intune_automation.data import AssignmentFilter, AssignmentFilterType, PrinterShare
from intune_automation.graph.errors import GraphAPIError
from intune_automation.services.printers import (
    SETTING_ROOT,
    AssignmentFilterNotFoundError,
    PrinterProvisioningService,
    build_assignment,
    build_policy_body,
    policy_name,
)

from tests.factories import make_print_share_payload
from tests.stubs import FakeGraphClientFactory

SHARES = "/print/shares"
POLICIES = "/deviceManagement/configurationPolicies"
FILTERS = "/deviceManagement/assignmentFilters"


def _share(name: str, printer_id: str | None = "printer-1") -> PrinterShare:
    return PrinterShare.from_graph(
        make_print_share_payload(share_id=f"share-{name}", display_name=name, printer_id=printer_id)
    )


def test_build_policy_body_targets_share_and_printer() -> None:
    body = build_policy_body(_share("Floor 2"), "Printer - Floor 2")

    assert body["name"] == "Printer - Floor 2"
    assert body["platforms"] == "windows10"
    assert body["technologies"] == "mdm"
    instance = body["settings"][0]["settingInstance"]
    assert instance["settingDefinitionId"] == SETTING_ROOT
    children = {
        child["settingDefinitionId"]: child
        for child in instance["groupSettingCollectionValue"][0]["children"]
    }
    assert children[f"{SETTING_ROOT}_clouddeviceid"]["simpleSettingValue"]["value"] == "printer-1"
    assert children[f"{SETTING_ROOT}_printersharedid"]["simpleSettingValue"]["value"] == "share-Floor 2"
    assert children[f"{SETTING_ROOT}_printersharedname"]["simpleSettingValue"]["value"] == "Floor 2"
    assert (
        children[f"{SETTING_ROOT}_install"]["choiceSettingValue"]["value"]
        == f"{SETTING_ROOT}_install_true"
    )


def test_build_policy_body_requires_printer() -> None:
    with pytest.raises(ValueError):
        build_policy_body(_share("Orphan", printer_id=None), "Printer - Orphan")


def test_build_assignment_with_and_without_filter() -> None:
    plain = build_assignment("group-1")
    assignment_filter = AssignmentFilter(id="filter-1", display_name="Laptops")
    filtered = build_assignment("group-1", assignment_filter, AssignmentFilterType.EXCLUDE)

    assert plain["target"]["groupId"] == "group-1"
    assert plain["target"]["deviceAndAppManagementAssignmentFilterType"] == "none"
    assert filtered["target"]["deviceAndAppManagementAssignmentFilterId"] == "filter-1"
    assert filtered["target"]["deviceAndAppManagementAssignmentFilterType"] == "exclude"


def test_policy_name_uses_prefix() -> None:
    assert policy_name(_share("HQ"), "UP - ") == "UP - HQ"


@pytest.mark.asyncio
async def test_provision_creates_assigns_and_skips_existing(
    fake_graph: FakeGraphClientFactory,
) -> None:
    fake_graph.set_collection(
        SHARES,
        [
            make_print_share_payload(share_id="s-1", display_name="HQ Floor 1"),
            make_print_share_payload(share_id="s-2", display_name="HQ Floor 2"),
            make_print_share_payload(share_id="s-3", display_name="Branch"),
            make_print_share_payload(share_id="s-4", display_name="HQ Broken", printer_id=None),
        ],
    )
    fake_graph.set_collection(POLICIES, [{"id": "p-old", "name": "printer - hq floor 2"}])
    fake_graph.set_collection(
        FILTERS,
        [{"id": "filter-1", "displayName": "Corporate Laptops", "platform": "windows10AndLater"}],
    )
    fake_graph.set_response("POST", POLICIES, {"id": "p-new"})
    service = PrinterProvisioningService(fake_graph)  # type: ignore[arg-type]

    result = await service.provision(
        share_pattern="hq*",
        group_id="group-1",
        filter_name="corporate laptops",
    )

    assert result.created == ["Printer - HQ Floor 1"]
    assert result.assigned == ["Printer - HQ Floor 1"]
    assert result.existing == ["Printer - HQ Floor 2"]
    assert result.failed == {"Printer - HQ Broken": "share has no printer"}
    (assign,) = fake_graph.calls("POST", f"{POLICIES}/p-new/assign")
    target = assign.body["assignments"][0]["target"]
    assert target["deviceAndAppManagementAssignmentFilterId"] == "filter-1"
    assert target["deviceAndAppManagementAssignmentFilterType"] == "include"


@pytest.mark.asyncio
async def test_provision_what_if_sends_no_writes(fake_graph: FakeGraphClientFactory) -> None:
    fake_graph.set_collection(SHARES, [make_print_share_payload(share_id="s-1", display_name="HQ")])
    service = PrinterProvisioningService(fake_graph)  # type: ignore[arg-type]

    result = await service.provision(group_id="group-1", what_if=True)

    assert result.what_if
    assert result.created == ["Printer - HQ"]
    assert result.assigned == ["Printer - HQ"]
    assert fake_graph.calls("POST") == []


@pytest.mark.asyncio
async def test_provision_without_group_only_creates(fake_graph: FakeGraphClientFactory) -> None:
    fake_graph.set_collection(SHARES, [make_print_share_payload(share_id="s-1", display_name="HQ")])
    fake_graph.set_response("POST", POLICIES, {"id": "p-new"})
    service = PrinterProvisioningService(fake_graph)  # type: ignore[arg-type]

    result = await service.provision()

    assert result.created == ["Printer - HQ"]
    assert result.assigned == []
    assert fake_graph.calls("POST", f"{POLICIES}/p-new/assign") == []


@pytest.mark.asyncio
async def test_provision_records_create_failures(fake_graph: FakeGraphClientFactory) -> None:
    fake_graph.set_collection(SHARES, [make_print_share_payload(share_id="s-1", display_name="HQ")])
    fake_graph.set_response("POST", POLICIES, GraphAPIError(message="Bad request", status_code=400))
    service = PrinterProvisioningService(fake_graph)  # type: ignore[arg-type]

    result = await service.provision(group_id="group-1")

    assert result.failed == {"Printer - HQ": "Bad request"}
    assert not result.succeeded


@pytest.mark.asyncio
async def test_unknown_filter_fails_before_any_write(fake_graph: FakeGraphClientFactory) -> None:
    fake_graph.set_collection(SHARES, [make_print_share_payload(share_id="s-1", display_name="HQ")])
    service = PrinterProvisioningService(fake_graph)  # type: ignore[arg-type]

    with pytest.raises(AssignmentFilterNotFoundError):
        await service.provision(group_id="group-1", filter_name="Missing")
    assert fake_graph.calls("POST") == []
    assert fake_graph.calls("GET", SHARES) == []


@pytest.mark.asyncio
async def test_filter_requires_group(fake_graph: FakeGraphClientFactory) -> None:
    service = PrinterProvisioningService(fake_graph)  # type: ignore[arg-type]

    with pytest.raises(ValueError, match="group"):
        await service.provision(filter_name="Laptops")
