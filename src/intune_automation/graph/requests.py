from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence


GraphMethod = Literal["GET", "POST", "PATCH", "DELETE", "PUT"]
BETA_VERSION = "beta"
V1_VERSION = "v1.0"

HEALTH_SCRIPTS_PATH = "/deviceManagement/deviceHealthScripts"
COMPLIANCE_POLICIES_PATH = "/deviceManagement/deviceCompliancePolicies"
CONFIGURATION_POLICIES_PATH = "/deviceManagement/configurationPolicies"
ASSIGNMENT_FILTERS_PATH = "/deviceManagement/assignmentFilters"
MANAGED_DEVICES_PATH = "/deviceManagement/managedDevices"
PRINT_SHARES_PATH = "/print/shares"


@dataclass(slots=True)
class GraphRequest:
    """Structured representation of a Microsoft Graph request."""

    method: GraphMethod
    url: str
    headers: dict[str, str] | None = None
    body: Any | None = None
    params: dict[str, Any] | None = None
    api_version: str | None = None


def _select(fields: Sequence[str] | None) -> dict[str, Any] | None:
    if not fields:
        return None
    return {"$select": ",".join(fields)}


# ---------------------------------------------------------------- Devices


def managed_devices_request(
    *,
    operating_system: str | None = None,
    select: Sequence[str] | None = None,
) -> GraphRequest:
    params = _select(select) or {}
    if operating_system:
        escaped = operating_system.replace("'", "''")
        params["$filter"] = f"operatingSystem eq '{escaped}'"
    return GraphRequest(
        method="GET",
        url=MANAGED_DEVICES_PATH,
        params=params or None,
        api_version=BETA_VERSION,
    )


def managed_device_request(
    device_id: str,
    *,
    select: Sequence[str] | None = None,
) -> GraphRequest:
    """Single device lookup; storage counters are only populated on this route."""

    return GraphRequest(
        method="GET",
        url=f"{MANAGED_DEVICES_PATH}/{device_id}",
        params=_select(select),
        api_version=BETA_VERSION,
    )


# ---------------------------------------------------------- Health scripts


def health_scripts_request() -> GraphRequest:
    return GraphRequest(method="GET", url=HEALTH_SCRIPTS_PATH, api_version=BETA_VERSION)


def health_script_request(script_id: str) -> GraphRequest:
    return GraphRequest(
        method="GET",
        url=f"{HEALTH_SCRIPTS_PATH}/{script_id}",
        api_version=BETA_VERSION,
    )


def health_script_create_request(body: dict[str, Any]) -> GraphRequest:
    return GraphRequest(
        method="POST",
        url=HEALTH_SCRIPTS_PATH,
        body=body,
        api_version=BETA_VERSION,
    )


def health_script_update_request(script_id: str, body: dict[str, Any]) -> GraphRequest:
    return GraphRequest(
        method="PATCH",
        url=f"{HEALTH_SCRIPTS_PATH}/{script_id}",
        body=body,
        api_version=BETA_VERSION,
    )


# ------------------------------------------------------ Compliance policies


def compliance_policies_request() -> GraphRequest:
    return GraphRequest(
        method="GET",
        url=COMPLIANCE_POLICIES_PATH,
        api_version=BETA_VERSION,
    )


def compliance_policy_update_request(
    policy_id: str,
    body: dict[str, Any],
) -> GraphRequest:
    return GraphRequest(
        method="PATCH",
        url=f"{COMPLIANCE_POLICIES_PATH}/{policy_id}",
        body=body,
        api_version=BETA_VERSION,
    )


# --------------------------------------------------- Configuration policies


def configuration_policies_request(
    *,
    select: Sequence[str] | None = None,
) -> GraphRequest:
    return GraphRequest(
        method="GET",
        url=CONFIGURATION_POLICIES_PATH,
        params=_select(select),
        api_version=BETA_VERSION,
    )


def configuration_policy_request(policy_id: str) -> GraphRequest:
    return GraphRequest(
        method="GET",
        url=f"{CONFIGURATION_POLICIES_PATH}/{policy_id}",
        api_version=BETA_VERSION,
    )


def configuration_policy_settings_request(policy_id: str) -> GraphRequest:
    """Settings tree of a settings-catalog policy with definitions expanded."""

    return GraphRequest(
        method="GET",
        url=f"{CONFIGURATION_POLICIES_PATH}/{policy_id}/settings",
        params={"$expand": "settingDefinitions"},
        api_version=BETA_VERSION,
    )


def configuration_policy_create_request(body: dict[str, Any]) -> GraphRequest:
    return GraphRequest(
        method="POST",
        url=CONFIGURATION_POLICIES_PATH,
        body=body,
        api_version=BETA_VERSION,
    )


def configuration_policy_assign_request(
    policy_id: str,
    assignments: Sequence[dict[str, Any]],
) -> GraphRequest:
    return GraphRequest(
        method="POST",
        url=f"{CONFIGURATION_POLICIES_PATH}/{policy_id}/assign",
        body={"assignments": list(assignments)},
        api_version=BETA_VERSION,
    )


def assignment_filters_request() -> GraphRequest:
    return GraphRequest(
        method="GET",
        url=ASSIGNMENT_FILTERS_PATH,
        api_version=BETA_VERSION,
    )


# ----------------------------------------------------------------- Printing


def print_shares_request() -> GraphRequest:
    return GraphRequest(
        method="GET",
        url=PRINT_SHARES_PATH,
        params={"$expand": "printer"},
        api_version=V1_VERSION,
    )


__all__ = [
    "BETA_VERSION",
    "V1_VERSION",
    "GraphMethod",
    "GraphRequest",
    "HEALTH_SCRIPTS_PATH",
    "COMPLIANCE_POLICIES_PATH",
    "CONFIGURATION_POLICIES_PATH",
    "ASSIGNMENT_FILTERS_PATH",
    "MANAGED_DEVICES_PATH",
    "PRINT_SHARES_PATH",
    "managed_devices_request",
    "managed_device_request",
    "health_scripts_request",
    "health_script_request",
    "health_script_create_request",
    "health_script_update_request",
    "compliance_policies_request",
    "compliance_policy_update_request",
    "configuration_policies_request",
    "configuration_policy_request",
    "configuration_policy_settings_request",
    "configuration_policy_create_request",
    "configuration_policy_assign_request",
    "assignment_filters_request",
    "print_shares_request",
]
