from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence


class GraphErrorCategory(str, Enum):
    PERMISSION = "permission"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    UNKNOWN = "unknown"


# Application permission needed per Graph path prefix (longest prefix wins).
_PERMISSIONS_BY_PREFIX: dict[str, tuple[str, ...]] = {
    "/deviceManagement/deviceHealthScripts": ("DeviceManagementScripts.ReadWrite.All",),
    "/deviceManagement/deviceCompliancePolicies": (
        "DeviceManagementConfiguration.ReadWrite.All",
    ),
    "/deviceManagement/configurationPolicies": (
        "DeviceManagementConfiguration.ReadWrite.All",
    ),
    "/deviceManagement/assignmentFilters": (
        "DeviceManagementConfiguration.Read.All",
    ),
    "/deviceManagement/managedDevices": ("DeviceManagementManagedDevices.Read.All",),
    "/print/shares": ("PrinterShare.Read.All",),
}


@dataclass(slots=True)
class GraphAPIError(Exception):
    message: str
    category: GraphErrorCategory = GraphErrorCategory.UNKNOWN
    status_code: int | None = None
    code: str | None = None
    retry_after: str | None = None
    inner_error: Exception | None = None
    request_method: str | None = None
    request_url: str | None = None
    cli_example: str | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message

    @property
    def recovery_suggestion(self) -> str | None:
        match self.category:
            case GraphErrorCategory.AUTHENTICATION:
                return "Refresh the Graph token or verify the app registration credentials."
            case GraphErrorCategory.PERMISSION:
                needed = ", ".join(self.required_permissions or ())
                if needed:
                    return f"Grant and consent the application permission(s): {needed}."
                return "Grant the app registration the required Graph application permissions."
            case GraphErrorCategory.RATE_LIMIT:
                if self.retry_after:
                    return f"Graph throttled the request; retry after {self.retry_after} seconds."
                return "Graph throttled the request; rerun later."
            case GraphErrorCategory.NETWORK:
                return "Check connectivity to graph.microsoft.com and rerun."
            case GraphErrorCategory.CONFLICT:
                return "The object changed or already exists; rerun to pick up the latest state."
            case GraphErrorCategory.VALIDATION:
                return "Graph rejected the payload; review the input files and arguments."
            case GraphErrorCategory.NOT_FOUND:
                return "Verify the object id or name exists in the tenant."
            case _:
                return None

    @property
    def required_permissions(self) -> Sequence[str] | None:
        if self.category is not GraphErrorCategory.PERMISSION or not self.request_url:
            return None
        path = _graph_path(self.request_url)
        best: str | None = None
        for prefix in _PERMISSIONS_BY_PREFIX:
            if path.startswith(prefix) and (best is None or len(prefix) > len(best)):
                best = prefix
        return list(_PERMISSIONS_BY_PREFIX[best]) if best else None

    @property
    def is_retriable(self) -> bool:
        if self.category in {GraphErrorCategory.RATE_LIMIT, GraphErrorCategory.NETWORK}:
            return True
        if self.status_code and 500 <= self.status_code <= 599:
            return True
        return False


def _graph_path(url: str) -> str:
    trimmed = url.split("?", 1)[0]
    marker = "graph.microsoft.com"
    if marker in trimmed:
        trimmed = trimmed.split(marker, 1)[1]
    for version in ("/beta", "/v1.0"):
        if trimmed.startswith(version + "/"):
            return trimmed[len(version) :]
    return trimmed


class RateLimitError(GraphAPIError):
    def __init__(
        self, message: str = "Rate limited", retry_after: str | None = None
    ) -> None:
        super().__init__(
            message=message,
            category=GraphErrorCategory.RATE_LIMIT,
            status_code=429,
            retry_after=retry_after,
        )


class AuthenticationError(GraphAPIError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message=message, category=GraphErrorCategory.AUTHENTICATION)


class PermissionError(GraphAPIError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(
            message=message,
            category=GraphErrorCategory.PERMISSION,
            status_code=403,
        )


__all__ = [
    "GraphAPIError",
    "GraphErrorCategory",
    "RateLimitError",
    "AuthenticationError",
    "PermissionError",
]
