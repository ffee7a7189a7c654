from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from intune_automation.graph.client import GraphClientFactory
from intune_automation.utils import LoggingOptions, configure_logging

from tests.factories import make_client_factory
from tests.stubs import FakeGraphClientFactory, FakeRegistry, FakeSecedit


@pytest.fixture(scope="session", autouse=True)
def _console_logging_only() -> None:
    """Keep test runs from writing log files into the user's cache directory."""

    configure_logging(LoggingOptions(level="DEBUG", file_sink=False))


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip ambient credentials so tests never pick up a developer's tenant."""

    for name in (
        "GRAPH_TOKEN",
        "INTUNE_AUTOMATION_TENANT_ID",
        "INTUNE_AUTOMATION_CLIENT_ID",
        "INTUNE_AUTOMATION_CLIENT_SECRET",
        "INTUNE_AUTOMATION_AUTHORITY",
        "INTUNE_AUTOMATION_GRAPH_TOKEN",
        "INTUNE_AUTOMATION_SCOPES",
        "INTUNE_AUTOMATION_PAGE_SIZE",
        "INTUNE_AUTOMATION_MAX_CONCURRENCY",
        "INTUNE_AUTOMATION_ALLOW_INSECURE_KEYRING",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest_asyncio.fixture
async def graph_factory() -> AsyncIterator[GraphClientFactory]:
    factory = make_client_factory()
    try:
        yield factory
    finally:
        await factory.close()


@pytest.fixture
def fake_graph() -> FakeGraphClientFactory:
    return FakeGraphClientFactory()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def secedit() -> FakeSecedit:
    return FakeSecedit()
