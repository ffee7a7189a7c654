from __future__ import annotations

import base64
import json
import time
from pathlib import Path
from typing import Any, Iterable

import msal
import pytest

from intune_automation.auth.types import AccessToken
from intune_automation.config.settings import Settings
from intune_automation.data import HEALTH_SCRIPT_ODATA_TYPE, ManagedDevice
from intune_automation.graph.client import GraphClientConfig, GraphClientFactory

GRAPH = "https://graph.microsoft.com"
BETA = f"{GRAPH}/beta"
V1 = f"{GRAPH}/v1.0"


def make_access_token(token: str = "token", expires_in: int = 3600) -> AccessToken:
    """Return a short-lived access token suitable for Graph client tests."""

    return AccessToken(token=token, expires_on=int(time.time()) + expires_in)


def make_jwt(**claims: object) -> str:
    """Unsigned JWT carrying ``claims``; enough for claim inspection."""

    def _segment(value: dict[str, object]) -> str:
        raw = json.dumps(value).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{_segment({'alg': 'none'})}.{_segment(dict(claims))}.signature"


def make_settings(**overrides: object) -> Settings:
    """Build Settings populated with safe defaults for auth scenarios."""

    settings = Settings(
        tenant_id="contoso.onmicrosoft.com",
        client_id="00000000-0000-0000-0000-000000000000",
    )
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


def make_client_factory(**config_overrides: Any) -> GraphClientFactory:
    config = GraphClientConfig(
        scopes=["https://graph.microsoft.com/.default"],
        enable_telemetry=False,
        **config_overrides,
    )
    return GraphClientFactory(lambda _scopes: make_access_token(), config)


def make_managed_device(
    *,
    device_id: str,
    device_name: str | None = None,
    operating_system: str = "Windows",
    total_bytes: int | None = None,
    free_bytes: int | None = None,
    **overrides: object,
) -> ManagedDevice:
    """Create a ManagedDevice instance using Graph aliases."""

    return ManagedDevice.from_graph(
        make_managed_device_payload(
            device_id=device_id,
            device_name=device_name,
            operating_system=operating_system,
            total_bytes=total_bytes,
            free_bytes=free_bytes,
            **overrides,
        )
    )


def make_managed_device_payload(
    *,
    device_id: str,
    device_name: str | None = None,
    operating_system: str = "Windows",
    total_bytes: int | None = None,
    free_bytes: int | None = None,
    **overrides: object,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": device_id,
        "deviceName": device_name or f"Device-{device_id}",
        "operatingSystem": operating_system,
        "userPrincipalName": f"user.{device_id}@contoso.com",
    }
    if total_bytes is not None:
        payload["totalStorageSpaceInBytes"] = total_bytes
    if free_bytes is not None:
        payload["freeStorageSpaceInBytes"] = free_bytes
    payload.update(overrides)
    return payload


def write_script_package(
    root: Path,
    name: str,
    *,
    detection: bytes = b"Write-Output 'ok'\r\nexit 0\r\n",
    remediation: bytes | None = b"Write-Output 'fixed'\r\n",
    metadata: dict[str, object] | None = None,
    detection_file: str = "detect.ps1",
    remediation_file: str = "remediate.ps1",
) -> Path:
    """Lay out one health script package directory under ``root``."""

    directory = root / name
    directory.mkdir(parents=True, exist_ok=True)
    (directory / detection_file).write_bytes(detection)
    if remediation is not None:
        (directory / remediation_file).write_bytes(remediation)
    if metadata is not None:
        (directory / "metadata.json").write_text(json.dumps(metadata), encoding="utf-8")
    return directory


def encode_script(content: bytes | None) -> str:
    return base64.b64encode(content or b"").decode("ascii")


def make_health_script_payload(
    *,
    script_id: str,
    display_name: str,
    detection: bytes | None = None,
    remediation: bytes | None = None,
    **overrides: object,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "@odata.type": HEALTH_SCRIPT_ODATA_TYPE,
        "id": script_id,
        "displayName": display_name,
        "description": "",
        "publisher": "",
        "runAsAccount": "system",
        "runAs32Bit": False,
        "enforceSignatureCheck": False,
        "roleScopeTagIds": ["0"],
    }
    if detection is not None:
        payload["detectionScriptContent"] = encode_script(detection)
    if remediation is not None:
        payload["remediationScriptContent"] = encode_script(remediation)
    payload.update(overrides)
    return payload


def make_compliance_policy_payload(
    *,
    policy_id: str,
    display_name: str,
    odata_type: str = "#microsoft.graph.windows10CompliancePolicy",
    os_minimum_version: str | None = None,
    build_ranges: Iterable[tuple[str, str]] | None = None,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "@odata.type": odata_type,
        "id": policy_id,
        "displayName": display_name,
        "osMinimumVersion": os_minimum_version,
    }
    if build_ranges is not None:
        payload["validOperatingSystemBuildRanges"] = [
            {"lowestVersion": low, "highestVersion": high} for low, high in build_ranges
        ]
    return payload


# --------------------------------------------------------- Settings catalog


def choice_instance(
    definition_id: str,
    value: str,
    children: Iterable[dict[str, Any]] = (),
) -> dict[str, Any]:
    return {
        "@odata.type": "#microsoft.graph.deviceManagementConfigurationChoiceSettingInstance",
        "settingDefinitionId": definition_id,
        "choiceSettingValue": {"value": value, "children": list(children)},
    }


def simple_instance(definition_id: str, value: object) -> dict[str, Any]:
    return {
        "@odata.type": "#microsoft.graph.deviceManagementConfigurationSimpleSettingInstance",
        "settingDefinitionId": definition_id,
        "simpleSettingValue": {"value": value},
    }


def group_collection_instance(
    definition_id: str,
    groups: Iterable[Iterable[dict[str, Any]]],
) -> dict[str, Any]:
    return {
        "@odata.type": "#microsoft.graph.deviceManagementConfigurationGroupSettingCollectionInstance",
        "settingDefinitionId": definition_id,
        "groupSettingCollectionValue": [{"children": list(children)} for children in groups],
    }


def make_definition(
    definition_id: str,
    display_name: str,
    options: Iterable[tuple[str, str]] = (),
) -> dict[str, Any]:
    return {
        "id": definition_id,
        "displayName": display_name,
        "options": [
            {"itemId": item_id, "displayName": label} for item_id, label in options
        ]
        or None,
    }


def make_policy_setting(
    setting_id: str,
    instance: dict[str, Any],
    definitions: Iterable[dict[str, Any]] = (),
) -> dict[str, Any]:
    return {
        "id": setting_id,
        "settingInstance": instance,
        "settingDefinitions": list(definitions),
    }


def make_print_share_payload(
    *,
    share_id: str,
    display_name: str,
    printer_id: str | None = "printer-1",
) -> dict[str, object]:
    payload: dict[str, object] = {"id": share_id, "displayName": display_name}
    if printer_id is not None:
        payload["printer"] = {"id": printer_id, "displayName": f"{display_name} device"}
    return payload


def configure_auth_manager(
    *,
    settings: Settings,
    stub_app,
    monkeypatch: pytest.MonkeyPatch,
    client_secret: str | None = "secret",
):
    """Configure AuthManager with a stubbed ConfidentialClientApplication."""

    from intune_automation.auth.auth_manager import AuthManager

    def _factory(client_id: str, authority: str, client_credential: str):
        stub_app.client_id = client_id
        stub_app.authority = authority
        stub_app.client_credential = client_credential
        return stub_app

    monkeypatch.setattr(msal, "ConfidentialClientApplication", _factory)
    manager = AuthManager()
    manager.configure(settings, client_secret=client_secret)
    return manager
