from __future__ import annotations

import pytest

from intune_automation.auth import InsecureKeyringError, SecretStore
from intune_automation.auth.secret_store import is_secure_backend

from tests.stubs import MemoryKeyring


def test_secret_store_rejects_insecure_backend() -> None:
    backend = MemoryKeyring(secure=False)
    with pytest.raises(InsecureKeyringError):
        SecretStore(service_name="pytest", backend=backend)


def test_insecure_backend_allowed_through_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INTUNE_AUTOMATION_ALLOW_INSECURE_KEYRING", "yes")
    store = SecretStore(service_name="pytest", backend=MemoryKeyring(secure=False))
    store.save_client_secret("client", "value")
    assert store.client_secret("client") == "value"


def test_explicit_override_wins_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INTUNE_AUTOMATION_ALLOW_INSECURE_KEYRING", "1")
    with pytest.raises(InsecureKeyringError):
        SecretStore(
            service_name="pytest",
            backend=MemoryKeyring(secure=False),
            allow_insecure=False,
        )


def test_secrets_are_isolated_per_client_id() -> None:
    backend = MemoryKeyring(secure=True)
    store = SecretStore(service_name="pytest", backend=backend)
    store.save_client_secret("app-a", "alpha")
    store.save_client_secret("app-b", "bravo")

    assert store.client_secret("app-a") == "alpha"
    assert backend.get_password("pytest", "app-b:client_secret") == "bravo"

    store.forget_client_secret("app-a")
    store.forget_client_secret("app-a")
    assert store.client_secret("app-a") is None
    assert store.client_secret("app-b") == "bravo"


def test_chained_backend_is_only_secure_when_every_member_is() -> None:
    class ChainerBackend(MemoryKeyring):
        pass

    ChainerBackend.__module__ = "keyring.backends.chainer"
    chain = ChainerBackend(secure=True)
    del chain.secure_storage
    chain.backends = [MemoryKeyring(secure=True), MemoryKeyring(secure=False)]  # type: ignore[attr-defined]

    assert not is_secure_backend(chain)

    chain.backends = [MemoryKeyring(secure=True)]  # type: ignore[attr-defined]
    assert is_secure_backend(chain)
