from __future__ import annotations

import httpx
import pytest
import respx

from intune_automation.graph.client import GraphClientFactory
from intune_automation.graph.errors import PermissionError as GraphPermissionError
from intune_automation.services.devices import DeviceQueryService

from tests.factories import BETA, make_managed_device_payload


@pytest.mark.asyncio
async def test_list_devices_filters_by_operating_system(
    graph_factory: GraphClientFactory,
    respx_mock: respx.Router,
) -> None:
    route = respx_mock.get(f"{BETA}/deviceManagement/managedDevices").mock(
        return_value=httpx.Response(
            200,
            json={
                "value": [
                    make_managed_device_payload(device_id="device-1", device_name="Surface"),
                    {"deviceName": "no id"},
                    make_managed_device_payload(device_id="device-2"),
                ]
            },
        ),
    )
    service = DeviceQueryService(graph_factory)

    devices = await service.list_devices(operating_system="Windows", select=("id", "deviceName"))

    assert [device.id for device in devices] == ["device-1", "device-2"]
    assert service.invalid_count == 1
    params = route.calls.last.request.url.params
    assert params["$filter"] == "operatingSystem eq 'Windows'"
    assert params["$select"] == "id,deviceName"


@pytest.mark.asyncio
async def test_get_device_reads_storage_counters(
    graph_factory: GraphClientFactory,
    respx_mock: respx.Router,
) -> None:
    respx_mock.get(f"{BETA}/deviceManagement/managedDevices/device-1").mock(
        return_value=httpx.Response(
            200,
            json=make_managed_device_payload(
                device_id="device-1",
                total_bytes=256 * 1024**3,
                free_bytes=64 * 1024**3,
            ),
        ),
    )
    service = DeviceQueryService(graph_factory)

    device = await service.get_device("device-1", select=("id",))

    assert device.free_storage_percent == pytest.approx(25.0)


@pytest.mark.asyncio
async def test_permission_errors_propagate(
    graph_factory: GraphClientFactory,
    respx_mock: respx.Router,
) -> None:
    respx_mock.get(f"{BETA}/deviceManagement/managedDevices").mock(
        return_value=httpx.Response(
            403,
            json={"error": {"code": "Forbidden", "message": "Missing role"}},
        ),
    )
    service = DeviceQueryService(graph_factory)

    with pytest.raises(GraphPermissionError) as excinfo:
        await service.list_devices()

    assert excinfo.value.required_permissions == ["DeviceManagementManagedDevices.Read.All"]
