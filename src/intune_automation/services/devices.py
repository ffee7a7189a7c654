from __future__ import annotations

from typing import Sequence

from intune_automation.data import GraphResponseValidator, ManagedDevice
from intune_automation.graph.client import GraphClientFactory
from intune_automation.graph.requests import (
    managed_device_request,
    managed_devices_request,
)
from intune_automation.utils import get_logger


logger = get_logger(__name__)


class DeviceQueryService:
    """Read-only queries against the Intune managed device inventory."""

    def __init__(self, client_factory: GraphClientFactory) -> None:
        self._client_factory = client_factory
        self._validator = GraphResponseValidator("managedDevices")

    @property
    def invalid_count(self) -> int:
        return len(self._validator.issues())

    async def list_devices(
        self,
        *,
        operating_system: str | None = None,
        select: Sequence[str] | None = None,
    ) -> list[ManagedDevice]:
        """Page through managed devices, optionally filtered to one OS."""

        self._validator.reset()
        request = managed_devices_request(
            operating_system=operating_system,
            select=select,
        )
        devices: list[ManagedDevice] = []
        async for item in self._client_factory.iter_request(request):
            device = self._validator.parse(ManagedDevice, item)
            if device is not None:
                devices.append(device)

        if self.invalid_count:
            logger.warning(
                "Skipped managed devices with unexpected payloads",
                invalid=self.invalid_count,
            )
        logger.info(
            "Listed managed devices",
            operating_system=operating_system,
            count=len(devices),
        )
        return devices

    async def get_device(
        self,
        device_id: str,
        *,
        select: Sequence[str] | None = None,
    ) -> ManagedDevice:
        payload = await self._client_factory.execute(
            managed_device_request(device_id, select=select)
        )
        return ManagedDevice.from_graph(payload)


__all__ = ["DeviceQueryService"]
