from __future__ import annotations

import asyncio
import json
import shlex
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncGenerator,
    Callable,
    Mapping,
    Sequence,
    TypeAlias,
)

import httpx

if TYPE_CHECKING:
    from intune_automation.auth.types import TokenProvider
from intune_automation.graph.errors import (
    AuthenticationError,
    GraphAPIError,
    GraphErrorCategory,
    PermissionError,
    RateLimitError,
)
from intune_automation.graph.requests import GraphRequest
from intune_automation.graph.throttle import GraphThrottle
from intune_automation.utils.logging import get_logger


logger = get_logger(__name__)

GRAPH_HOST = "graph.microsoft.com"


class GraphAPIVersion(str, Enum):
    V1 = "v1.0"
    BETA = "beta"


ApiVersionInput: TypeAlias = GraphAPIVersion | str | None


DEFAULT_VERSION_OVERRIDES: dict[str, str] = {
    "/deviceManagement/deviceHealthScripts": GraphAPIVersion.BETA.value,
    "/deviceManagement/deviceCompliancePolicies": GraphAPIVersion.BETA.value,
    "/deviceManagement/configurationPolicies": GraphAPIVersion.BETA.value,
    "/deviceManagement/configurationSettings": GraphAPIVersion.BETA.value,
    "/deviceManagement/assignmentFilters": GraphAPIVersion.BETA.value,
    "/deviceManagement/managedDevices": GraphAPIVersion.BETA.value,
}


@dataclass(slots=True)
class GraphTelemetryEvent:
    method: str
    url: str
    status_code: int | None
    duration_ms: float
    retries: int
    category: GraphErrorCategory | None
    success: bool


def _coerce_api_version(value: GraphAPIVersion | str) -> str:
    if isinstance(value, GraphAPIVersion):
        return value.value
    lowered = value.strip().lower()
    if lowered in {"v1", "v1.0", "1.0", "ga"}:
        return GraphAPIVersion.V1.value
    if lowered == "beta":
        return GraphAPIVersion.BETA.value
    raise ValueError(f"Unsupported Graph API version: {value!r}")


def _split_path(path: str) -> tuple[str, str | None]:
    """Return a leading-slash path without host/version plus any embedded version."""

    trimmed = path.strip()
    for scheme in ("https://", "http://"):
        prefix = f"{scheme}{GRAPH_HOST}"
        if trimmed.startswith(prefix):
            trimmed = trimmed[len(prefix) :]
            break
    if not trimmed.startswith("/"):
        trimmed = "/" + trimmed

    version: str | None = None
    for candidate in (GraphAPIVersion.BETA.value, GraphAPIVersion.V1.value):
        marker = f"/{candidate}"
        if trimmed == marker or trimmed.startswith(marker + "/"):
            version = candidate
            trimmed = trimmed[len(marker) :] or "/"
            break

    if trimmed != "/" and trimmed.endswith("/"):
        trimmed = trimmed.rstrip("/")
    return trimmed, version


def _prefix_matches(prefix: str, path: str) -> bool:
    if prefix in {"", "/"} or path == prefix:
        return True
    return path.startswith(prefix) and path[len(prefix)] == "/"


class ThrottledAsyncClient(httpx.AsyncClient):
    """httpx client that paces, retries and maps Graph failures on every send."""

    def __init__(
        self,
        *args: Any,
        throttle: GraphThrottle | None = None,
        telemetry_callback: Callable[[GraphTelemetryEvent], None] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.throttle = throttle or GraphThrottle()
        self._telemetry_callback = telemetry_callback

    async def send(self, request: httpx.Request, **kwargs: Any) -> httpx.Response:
        method = request.method.upper()
        is_write = method in {"POST", "PUT", "PATCH", "DELETE"}
        # A POST that reached Graph may have been applied; resending it duplicates.
        replayable = method != "POST"
        attempt = 1
        start = time.perf_counter()

        while True:
            await self.throttle.wait_for_capacity(is_write=is_write)

            try:
                response = await super().send(request, **kwargs)
            except httpx.RequestError as exc:
                timed_out = isinstance(exc, httpx.TimeoutException)
                unsent = isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout))
                error = GraphAPIError(
                    message=(
                        "Network timeout communicating with Microsoft Graph"
                        if timed_out
                        else f"Network error communicating with Microsoft Graph: {exc}"
                    ),
                    category=GraphErrorCategory.NETWORK,
                    inner_error=exc,
                )
                if (unsent or (timed_out and replayable)) and self.throttle.should_retry(
                    attempt=attempt, error=error
                ):
                    await asyncio.sleep(self.throttle.retry_delay(attempt=attempt))
                    attempt += 1
                    continue
                self._publish(request, start, None, attempt, error.category)
                raise error from exc

            if response.status_code >= 400:
                await response.aread()
                error = map_response_to_error(response)
                rate_limited = error.category is GraphErrorCategory.RATE_LIMIT
                if rate_limited:
                    self.throttle.record_rate_limit()
                if (rate_limited or replayable) and self.throttle.should_retry(
                    attempt=attempt, error=error
                ):
                    delay = self.throttle.retry_delay(
                        attempt=attempt,
                        retry_after_header=error.retry_after,
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue
                self._publish(request, start, response.status_code, attempt, error.category)
                raise error

            self.throttle.record_success()
            self._publish(request, start, response.status_code, attempt, None)
            return response

    def _publish(
        self,
        request: httpx.Request,
        start: float,
        status_code: int | None,
        attempt: int,
        category: GraphErrorCategory | None,
    ) -> None:
        if not self._telemetry_callback:
            return
        event = GraphTelemetryEvent(
            method=request.method,
            url=str(request.url),
            status_code=status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            retries=max(attempt - 1, 0),
            category=category,
            success=category is None,
        )
        try:
            self._telemetry_callback(event)
        except Exception:  # pragma: no cover
            logger.warning("Telemetry callback raised an exception", exc_info=True)


def map_response_to_error(response: httpx.Response) -> GraphAPIError:
    """Translate a failed Graph response into the error taxonomy."""

    status = response.status_code
    retry_after = response.headers.get("Retry-After")
    code: str | None = None
    message: str | None = None
    try:
        body = json.loads(response.text) if response.text else {}
    except ValueError:
        body = {}
    error_info = body.get("error") if isinstance(body, dict) else None
    if isinstance(error_info, dict):
        raw_code = error_info.get("code")
        code = raw_code if isinstance(raw_code, str) else None
        raw_message = error_info.get("message")
        message = raw_message if isinstance(raw_message, str) else None

    message = message or response.text or f"Graph request failed with status {status}"

    if status == 401:
        error: GraphAPIError = AuthenticationError(message=message)
    elif status == 403:
        error = PermissionError(message=message)
    elif status == 429:
        error = RateLimitError(message=message, retry_after=retry_after)
    else:
        category = GraphErrorCategory.UNKNOWN
        if status == 404:
            category = GraphErrorCategory.NOT_FOUND
        elif status == 409:
            category = GraphErrorCategory.CONFLICT
        elif status == 400:
            category = GraphErrorCategory.VALIDATION
        error = GraphAPIError(
            message=message,
            category=category,
            status_code=status,
            retry_after=retry_after,
        )
    error.status_code = status
    error.code = code
    error.request_method = response.request.method
    error.request_url = str(response.request.url)
    return error


@dataclass(slots=True)
class GraphClientConfig:
    scopes: Sequence[str]
    user_agent: str = "IntuneAutomation-Python"
    api_version: GraphAPIVersion | str = GraphAPIVersion.V1
    version_overrides: Mapping[str, GraphAPIVersion | str] = field(
        default_factory=lambda: dict(DEFAULT_VERSION_OVERRIDES),
    )
    page_size: int = 100
    enable_telemetry: bool = True
    telemetry_callback: Callable[[GraphTelemetryEvent], None] | None = None
    timeout: httpx.Timeout = field(
        default_factory=lambda: httpx.Timeout(connect=10.0, read=60.0, write=30.0, pool=5.0)
    )


class GraphClientFactory:
    """Entry point for Graph calls shared by every automation."""

    def __init__(self, token_provider: TokenProvider, config: GraphClientConfig) -> None:
        self._token_provider = token_provider
        self._config = config
        self._default_api_version = _coerce_api_version(config.api_version)
        self._version_overrides: dict[str, str] = {}
        for prefix, version in config.version_overrides.items():
            self.set_version_override(prefix, version)
        self._http_client: ThrottledAsyncClient | None = None

    async def __aenter__(self) -> "GraphClientFactory":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    @property
    def default_api_version(self) -> str:
        return self._default_api_version

    def set_version_override(self, prefix: str, version: GraphAPIVersion | str) -> None:
        """Force a specific API version for requests under a path prefix."""

        normalised, _ = _split_path(prefix)
        if normalised == "/":
            raise ValueError("Version override prefix cannot be empty")
        self._version_overrides[normalised] = _coerce_api_version(version)

    def resolve_api_version(self, path: str, *, explicit: ApiVersionInput = None) -> str:
        relative, embedded = _split_path(path)
        return self._resolve_api_version(relative, explicit or embedded)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        headers: dict[str, str] | None = None,
        api_version: ApiVersionInput = None,
    ) -> httpx.Response:
        client = self._get_http_client()
        url = self.absolute_url(path, api_version=api_version)
        try:
            return await client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
            )
        except GraphAPIError as exc:
            exc.request_method = method.upper()
            exc.request_url = exc.request_url or url
            if not exc.cli_example:
                exc.cli_example = self._build_cli_example(
                    method=method,
                    url=url,
                    params=params,
                    headers=headers,
                    json_body=json_body,
                )
            raise

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        headers: dict[str, str] | None = None,
        api_version: ApiVersionInput = None,
    ) -> dict[str, Any]:
        response = await self.request(
            method,
            path,
            params=params,
            json_body=json_body,
            headers=headers,
            api_version=api_version,
        )
        # PATCH and assign return 204 without a body.
        if response.status_code == 204 or not response.content:
            return {}
        payload = response.json()
        return payload if isinstance(payload, dict) else {"value": payload}

    async def execute(self, request: GraphRequest) -> dict[str, Any]:
        return await self.request_json(
            request.method,
            request.url,
            params=request.params,
            json_body=request.body,
            headers=request.headers,
            api_version=request.api_version,
        )

    async def iter_collection(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        page_size: int | None = None,
        api_version: ApiVersionInput = None,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield items of a collection, following ``@odata.nextLink`` pages."""

        next_url = self.absolute_url(path, api_version=api_version)
        query: dict[str, Any] | None = dict(params or {})
        page_size = self._config.page_size if page_size is None else page_size
        if page_size and "$top" not in query:
            query["$top"] = page_size

        page = 0
        while next_url:
            payload = await self.request_json("GET", next_url, params=query, headers=headers)
            page += 1
            value = payload.get("value")
            if not isinstance(value, list):
                yield payload
                return
            for item in value:
                yield item if isinstance(item, dict) else {"value": item}
            next_url = payload.get("@odata.nextLink")
            # nextLink already carries the original query string.
            query = None
            if next_url:
                logger.debug("Following Graph nextLink", page=page, path=path)

    async def iter_request(self, request: GraphRequest) -> AsyncGenerator[dict[str, Any], None]:
        async for item in self.iter_collection(
            request.url,
            params=request.params,
            headers=request.headers,
            api_version=request.api_version,
        ):
            yield item

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------- Internals

    def absolute_url(self, path: str, api_version: ApiVersionInput = None) -> str:
        relative, embedded = _split_path(path)
        if path.startswith(("http://", "https://")):
            # Foreign hosts and versioned nextLinks pass through untouched.
            if GRAPH_HOST not in path or (embedded and api_version is None):
                return path
        version = self._resolve_api_version(relative, api_version or embedded)
        return f"https://{GRAPH_HOST}/{version}{relative}"

    def _resolve_api_version(self, relative_path: str, explicit: ApiVersionInput) -> str:
        if explicit is not None:
            return _coerce_api_version(explicit)
        best_prefix: str | None = None
        for prefix in self._version_overrides:
            if _prefix_matches(prefix, relative_path):
                if best_prefix is None or len(prefix) > len(best_prefix):
                    best_prefix = prefix
        if best_prefix is not None:
            return self._version_overrides[best_prefix]
        return self._default_api_version

    def _build_cli_example(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        json_body: Any | None,
    ) -> str:
        if params:
            query = str(httpx.QueryParams(params))
            if query:
                url = f"{url}{'&' if '?' in url else '?'}{query}"
        tokens: list[str] = ["az", "rest", "--method", method.upper(), "--url", url]
        for key, value in (headers or {}).items():
            if key.lower() != "authorization":
                tokens.extend(["--headers", f"{key}={value}"])
        if json_body is not None:
            body = json.dumps(json_body, ensure_ascii=True, separators=(",", ":"), default=str)
            if len(body) > 800:
                body = f"{body[:797]}..."
            tokens.extend(["--body", body])
        return shlex.join(tokens)

    def _get_http_client(self) -> ThrottledAsyncClient:
        if self._http_client is None:
            callback = self._config.telemetry_callback
            if callback is None and self._config.enable_telemetry:
                callback = self._log_telemetry

            def bearer_auth(request: httpx.Request) -> httpx.Request:
                token = self._token_provider(self._config.scopes)
                request.headers["Authorization"] = f"Bearer {token.token}"
                return request

            self._http_client = ThrottledAsyncClient(
                headers={"User-Agent": self._config.user_agent},
                auth=bearer_auth,
                telemetry_callback=callback,
                timeout=self._config.timeout,
            )
        return self._http_client

    @staticmethod
    def _log_telemetry(event: GraphTelemetryEvent) -> None:
        logger.debug(
            "Graph request",
            method=event.method,
            url=event.url,
            status_code=event.status_code,
            duration_ms=round(event.duration_ms, 2),
            retries=event.retries,
            success=event.success,
            category=event.category.value if event.category else None,
        )


__all__ = [
    "ApiVersionInput",
    "GraphAPIVersion",
    "GraphClientConfig",
    "GraphClientFactory",
    "GraphTelemetryEvent",
    "ThrottledAsyncClient",
    "map_response_to_error",
]
