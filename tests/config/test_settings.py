from __future__ import annotations

from pathlib import Path

import pytest

from intune_automation.config import DEFAULT_GRAPH_SCOPES, Settings, SettingsManager


def test_load_reads_prefixed_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("INTUNE_AUTOMATION_TENANT_ID", "contoso.onmicrosoft.com")
    monkeypatch.setenv("INTUNE_AUTOMATION_CLIENT_ID", "client-id")
    monkeypatch.setenv("INTUNE_AUTOMATION_SCOPES", "scope-a; scope-b ;")
    monkeypatch.setenv("INTUNE_AUTOMATION_MAX_CONCURRENCY", "4")

    settings = SettingsManager(tmp_path / "missing.env").load()

    assert settings.tenant_id == "contoso.onmicrosoft.com"
    assert settings.client_id == "client-id"
    assert settings.graph_scopes == ["scope-a", "scope-b"]
    assert settings.max_concurrency == 4
    assert settings.has_client_credentials


def test_bare_graph_token_is_picked_up(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GRAPH_TOKEN", "from-ci")

    settings = SettingsManager(tmp_path / "missing.env").load()

    assert settings.graph_token == "from-ci"
    assert not settings.has_client_credentials
    assert list(settings.configured_scopes()) == list(DEFAULT_GRAPH_SCOPES)


def test_invalid_integer_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INTUNE_AUTOMATION_PAGE_SIZE", "lots")

    with pytest.raises(ValueError, match="PAGE_SIZE"):
        SettingsManager(tmp_path / "missing.env").load()


def test_non_positive_integer_is_rejected(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("INTUNE_AUTOMATION_MAX_CONCURRENCY", "0")

    with pytest.raises(ValueError, match="positive"):
        SettingsManager(tmp_path / "missing.env").load()


def test_derive_authority() -> None:
    assert (
        Settings(tenant_id="tenant").derive_authority()
        == "https://login.microsoftonline.com/tenant"
    )
    assert Settings(authority="https://custom").derive_authority() == "https://custom"
    with pytest.raises(ValueError):
        Settings().derive_authority()
