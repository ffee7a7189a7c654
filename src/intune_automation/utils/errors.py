from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from enum import Enum

import httpx

from intune_automation.graph.errors import GraphAPIError, GraphErrorCategory


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class ErrorDescriptor:
    headline: str
    detail: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    transient: bool = False
    suggestion: str | None = None
    reproduction: str | None = None


def describe_exception(error: BaseException) -> ErrorDescriptor:
    """Summarise an exception for the end-of-run console message."""

    graph_error = _locate_graph_error(error)
    if graph_error is not None:
        return ErrorDescriptor(
            headline=_graph_headline(graph_error),
            detail=f"{graph_error.code}: {graph_error}" if graph_error.code else str(graph_error),
            severity=ErrorSeverity.WARNING if graph_error.is_retriable else ErrorSeverity.ERROR,
            transient=graph_error.is_retriable,
            suggestion=graph_error.recovery_suggestion,
            reproduction=graph_error.cli_example,
        )

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ErrorDescriptor(
            headline="Timed out waiting for Microsoft Graph.",
            detail=f"{type(error).__name__}: {error}",
            severity=ErrorSeverity.WARNING,
            transient=True,
            suggestion="Rerun once connectivity is stable.",
        )

    if isinstance(error, socket.gaierror):
        return ErrorDescriptor(
            headline="DNS lookup failed while contacting Microsoft Graph.",
            detail=f"socket.gaierror: {error}",
            severity=ErrorSeverity.WARNING,
            transient=True,
            suggestion="Verify internet connectivity or DNS configuration.",
        )

    if isinstance(error, FileNotFoundError):
        return ErrorDescriptor(
            headline="A required file or folder is missing.",
            detail=str(error),
            suggestion="Check the paths passed on the command line.",
        )

    return ErrorDescriptor(
        headline="Operation failed.",
        detail=f"{type(error).__name__}: {error}",
    )


def _locate_graph_error(error: BaseException) -> GraphAPIError | None:
    current: BaseException | None = error
    visited: set[int] = set()
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        if isinstance(current, GraphAPIError):
            return current
        current = current.__cause__ or current.__context__
    return None


def _graph_headline(error: GraphAPIError) -> str:
    match error.category:
        case GraphErrorCategory.RATE_LIMIT:
            return "Microsoft Graph throttled the request."
        case GraphErrorCategory.NETWORK:
            return "Network issue contacting Microsoft Graph."
        case GraphErrorCategory.AUTHENTICATION:
            return "Microsoft Graph rejected the access token."
        case GraphErrorCategory.PERMISSION:
            return "The app registration lacks required Graph permissions."
        case GraphErrorCategory.CONFLICT:
            return "The requested change conflicts with existing data."
        case GraphErrorCategory.VALIDATION:
            return "Microsoft Graph rejected the request payload."
        case GraphErrorCategory.NOT_FOUND:
            return "The requested Intune object was not found."
        case _:
            return "Microsoft Graph request failed."


__all__ = [
    "ErrorDescriptor",
    "ErrorSeverity",
    "describe_exception",
]
