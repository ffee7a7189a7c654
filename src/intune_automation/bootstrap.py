from __future__ import annotations

from pathlib import Path

from intune_automation.auth import TokenProvider, resolve_token_provider
from intune_automation.config import Settings, SettingsManager
from intune_automation.graph.client import GraphClientConfig, GraphClientFactory
from intune_automation.utils import get_logger


logger = get_logger(__name__)


def load_settings(env_file: Path | None = None) -> Settings:
    manager = SettingsManager(env_file)
    settings = manager.load()
    logger.debug(
        "Loaded settings",
        env_file=str(manager.env_file),
        tenant_id=settings.tenant_id,
        client_id=settings.client_id,
        token_supplied=bool(settings.graph_token),
    )
    return settings


def build_client_factory(
    settings: Settings,
    *,
    graph_token: str | None = None,
    token_provider: TokenProvider | None = None,
) -> GraphClientFactory:
    """Create the Graph client factory shared by one automation run.

    Callers own the factory and must close it (``async with`` does).
    """

    provider = token_provider or resolve_token_provider(settings, graph_token=graph_token)
    config = GraphClientConfig(
        scopes=list(settings.configured_scopes()),
        page_size=settings.page_size,
    )
    return GraphClientFactory(provider, config)


__all__ = ["build_client_factory", "load_settings"]
