from __future__ import annotations

import time

import msal
import pytest

from intune_automation.auth import StaticTokenProvider, resolve_token_provider
from intune_automation.auth.auth_manager import AuthManager
from intune_automation.auth.permission_checker import PermissionChecker
from intune_automation.graph.errors import AuthenticationError

from tests.factories import configure_auth_manager, make_jwt, make_settings
from tests.stubs import StubConfidentialClientApplication


def test_configure_initialises_msal_client(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = make_settings()
    stub = StubConfidentialClientApplication()

    configure_auth_manager(settings=settings, stub_app=stub, monkeypatch=monkeypatch)

    assert stub.client_id == settings.client_id
    assert stub.authority == "https://login.microsoftonline.com/contoso.onmicrosoft.com"
    assert stub.client_credential == "secret"


def test_configure_requires_client_id(monkeypatch: pytest.MonkeyPatch) -> None:
    stub = StubConfidentialClientApplication()
    with pytest.raises(AuthenticationError):
        configure_auth_manager(
            settings=make_settings(client_id=None),
            stub_app=stub,
            monkeypatch=monkeypatch,
        )


def test_configure_requires_a_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    stub = StubConfidentialClientApplication()
    with pytest.raises(AuthenticationError, match="client secret"):
        configure_auth_manager(
            settings=make_settings(),
            stub_app=stub,
            monkeypatch=monkeypatch,
            client_secret=None,
        )


def test_acquire_token_uses_client_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    token = make_jwt(roles=["DeviceManagementConfiguration.ReadWrite.All"])
    stub = StubConfidentialClientApplication(
        results=[{"access_token": token, "expires_in": 1800}],
    )
    manager = configure_auth_manager(
        settings=make_settings(),
        stub_app=stub,
        monkeypatch=monkeypatch,
    )

    access = manager.token_provider()(["https://graph.microsoft.com/.default"])

    assert access.token == token
    assert access.expires_on >= int(time.time()) + 1700
    assert stub.acquire_calls == [("https://graph.microsoft.com/.default",)]


def test_acquire_token_surfaces_msal_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    stub = StubConfidentialClientApplication(
        results=[{"error": "invalid_client", "error_description": "AADSTS7000215"}],
    )
    manager = configure_auth_manager(
        settings=make_settings(),
        stub_app=stub,
        monkeypatch=monkeypatch,
    )

    with pytest.raises(AuthenticationError, match="AADSTS7000215"):
        manager.acquire_token()


def test_acquire_token_before_configure_fails() -> None:
    with pytest.raises(AuthenticationError):
        AuthManager().acquire_token()


def test_static_token_strips_bearer_prefix_and_reads_expiry() -> None:
    expires = int(time.time()) + 900
    token = make_jwt(exp=expires)

    provider = StaticTokenProvider(f"Bearer {token}")

    access = provider([])
    assert access.token == token
    assert access.expires_on == expires


def test_static_token_rejects_expired_tokens() -> None:
    provider = StaticTokenProvider(make_jwt(exp=int(time.time()) - 10))

    with pytest.raises(AuthenticationError, match="expired"):
        provider([])


@pytest.mark.parametrize("value", ["", "   ", "Bearer", "Bearer   ", "bearer", "BEARER \t"])
def test_static_token_rejects_empty_values(value: str) -> None:
    with pytest.raises(AuthenticationError):
        StaticTokenProvider(value)


def test_static_token_accepts_lowercase_prefix_with_extra_spacing() -> None:
    token = make_jwt(exp=int(time.time()) + 900)

    assert StaticTokenProvider(f"  bearer    {token}")([]).token == token


def test_permission_checker_accepts_readwrite_for_read() -> None:
    checker = PermissionChecker(
        ["DeviceManagementManagedDevices.Read.All", "PrinterShare.Read.All"]
    )
    token = make_jwt(roles=["DeviceManagementManagedDevices.ReadWrite.All"])

    assert checker.missing(token) == ["PrinterShare.Read.All"]


def test_permission_checker_reads_delegated_scopes() -> None:
    checker = PermissionChecker(["DeviceManagementScripts.ReadWrite.All"])
    token = make_jwt(scp="openid DeviceManagementScripts.ReadWrite.All")

    assert checker.missing(token) == []


def test_resolve_prefers_explicit_token() -> None:
    settings = make_settings(graph_token="configured-token")

    provider = resolve_token_provider(settings, graph_token="explicit-token")

    assert provider([]).token == "explicit-token"


def test_resolve_falls_back_to_configured_token() -> None:
    provider = resolve_token_provider(make_settings(graph_token="configured-token"))

    assert provider([]).token == "configured-token"


def test_resolve_without_credentials_fails() -> None:
    settings = make_settings(tenant_id=None, client_id=None)

    with pytest.raises(AuthenticationError, match="--graph-token"):
        resolve_token_provider(settings)


def test_resolve_reads_secret_from_keyring(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = make_settings()
    stub = StubConfidentialClientApplication(
        results=[{"access_token": "app-token", "expires_in": 3600}],
    )
    requested_ids: list[str] = []

    class _Store:
        def client_secret(self, client_id: str) -> str | None:
            requested_ids.append(client_id)
            return "from-keyring"

    def _factory(client_id: str, authority: str, client_credential: str):
        stub.client_credential = client_credential
        return stub

    monkeypatch.setattr(msal, "ConfidentialClientApplication", _factory)

    provider = resolve_token_provider(settings, secret_store_factory=_Store)

    assert provider(["https://graph.microsoft.com/.default"]).token == "app-token"
    assert stub.client_credential == "from-keyring"
    assert requested_ids == [settings.client_id]
