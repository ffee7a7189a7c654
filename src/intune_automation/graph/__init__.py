"""Graph client utilities."""

from .client import (
    ApiVersionInput,
    GraphAPIVersion,
    GraphClientConfig,
    GraphClientFactory,
    GraphTelemetryEvent,
)
from .errors import (
    AuthenticationError,
    GraphAPIError,
    GraphErrorCategory,
    PermissionError,
    RateLimitError,
)
from .requests import GraphRequest
from .throttle import GraphThrottle

__all__ = [
    "GraphAPIError",
    "GraphErrorCategory",
    "RateLimitError",
    "AuthenticationError",
    "PermissionError",
    "GraphThrottle",
    "GraphClientFactory",
    "GraphClientConfig",
    "GraphAPIVersion",
    "GraphRequest",
    "GraphTelemetryEvent",
    "ApiVersionInput",
]
