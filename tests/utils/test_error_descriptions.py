from __future__ import annotations

import asyncio

import httpx

from intune_automation.graph.errors import (
    GraphAPIError,
    GraphErrorCategory,
    PermissionError as GraphPermissionError,
    RateLimitError,
)
from intune_automation.utils.errors import ErrorSeverity, describe_exception


def test_graph_error_is_found_through_the_cause_chain() -> None:
    graph_error = GraphPermissionError("Missing role")
    graph_error.code = "Authorization_RequestDenied"
    graph_error.request_url = "https://graph.microsoft.com/beta/deviceManagement/configurationPolicies"
    graph_error.cli_example = "az rest --method GET --url https://graph.microsoft.com/beta/x"
    try:
        try:
            raise graph_error
        except GraphAPIError as exc:
            raise RuntimeError("wrapped") from exc
    except RuntimeError as wrapped:
        descriptor = describe_exception(wrapped)

    assert descriptor.headline == "The app registration lacks required Graph permissions."
    assert descriptor.detail == "Authorization_RequestDenied: Missing role"
    assert descriptor.severity is ErrorSeverity.ERROR
    assert "DeviceManagementConfiguration.ReadWrite.All" in (descriptor.suggestion or "")
    assert descriptor.reproduction == graph_error.cli_example


def test_rate_limits_are_transient_warnings() -> None:
    descriptor = describe_exception(RateLimitError(retry_after="12"))

    assert descriptor.transient
    assert descriptor.severity is ErrorSeverity.WARNING
    assert "12 seconds" in (descriptor.suggestion or "")


def test_not_found_headline() -> None:
    descriptor = describe_exception(
        GraphAPIError(message="gone", category=GraphErrorCategory.NOT_FOUND, status_code=404)
    )

    assert descriptor.headline == "The requested Intune object was not found."


def test_timeouts_are_transient() -> None:
    for error in (httpx.ReadTimeout("slow"), asyncio.TimeoutError()):
        descriptor = describe_exception(error)
        assert descriptor.transient
        assert descriptor.headline.startswith("Timed out")


def test_missing_files_and_generic_errors() -> None:
    missing = describe_exception(FileNotFoundError("Scripts folder not found: ./x"))
    generic = describe_exception(KeyError("oops"))

    assert missing.detail == "Scripts folder not found: ./x"
    assert missing.suggestion
    assert generic.headline == "Operation failed."
    assert generic.detail.startswith("KeyError")
