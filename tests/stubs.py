from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from typing import Any

from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from intune_automation.graph.requests import GraphRequest
from intune_automation.probes.registry import RegistryHive, RegistryValue, RegistryValueType


class StubConfidentialClientApplication:
    """Lightweight stand-in for msal.ConfidentialClientApplication."""

    def __init__(self, *, results: Iterable[dict[str, Any] | None] | None = None) -> None:
        self.client_id = ""
        self.authority = ""
        self.client_credential = ""
        self._results = list(results or [])
        self.acquire_calls: list[tuple[str, ...]] = []

    def acquire_token_for_client(self, scopes: Iterable[str]) -> dict[str, Any] | None:
        self.acquire_calls.append(tuple(scopes))
        if not self._results:
            raise RuntimeError("No token result configured")
        return self._results.pop(0)


class FakeGraphClientFactory:
    """Deterministic Graph client facade for service tests.

    Collections are served by URL; single requests answer from
    ``responses`` keyed by ``(method, url)`` and default to an empty body.
    """

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.responses: dict[tuple[str, str], dict[str, Any] | Exception] = {}
        self.executed: list[GraphRequest] = []

    def set_collection(self, path: str, items: Iterable[dict[str, Any]]) -> None:
        self.collections[path] = list(items)

    def set_response(
        self,
        method: str,
        path: str,
        response: dict[str, Any] | Exception,
    ) -> None:
        self.responses[(method, path)] = response

    def calls(self, method: str, path: str | None = None) -> list[GraphRequest]:
        return [
            request
            for request in self.executed
            if request.method == method and (path is None or request.url == path)
        ]

    async def iter_request(self, request: GraphRequest) -> AsyncIterator[dict[str, Any]]:
        self.executed.append(request)
        for item in self.collections.get(request.url, []):
            yield item

    async def execute(self, request: GraphRequest) -> dict[str, Any]:
        self.executed.append(request)
        configured = self.responses.get((request.method, request.url))
        if isinstance(configured, Exception):
            raise configured
        return dict(configured or {})


class FakeRegistry:
    """In-memory registry keyed case-insensitively like the real one."""

    def __init__(self) -> None:
        self._values: dict[tuple[str, str], dict[str, RegistryValue]] = {}
        self._original: dict[tuple[str, str], str] = {}
        self.writes: list[tuple[RegistryHive, str, str, Any, RegistryValueType]] = []

    @staticmethod
    def _key(hive: RegistryHive, key: str) -> tuple[str, str]:
        return (str(hive), key.strip("\\").lower())

    def set(
        self,
        hive: RegistryHive,
        key: str,
        name: str,
        data: Any,
        value_type: RegistryValueType = RegistryValueType.REG_SZ,
    ) -> None:
        self.add_key(hive, key)
        self._values[self._key(hive, key)][name.lower()] = RegistryValue(data, int(value_type))

    def add_key(self, hive: RegistryHive, key: str) -> None:
        self._values.setdefault(self._key(hive, key), {})
        self._original.setdefault(self._key(hive, key), key.strip("\\"))

    def read_value(self, hive: RegistryHive, key: str, name: str) -> RegistryValue | None:
        return self._values.get(self._key(hive, key), {}).get(name.lower())

    def write_value(
        self,
        hive: RegistryHive,
        key: str,
        name: str,
        data: Any,
        value_type: RegistryValueType,
    ) -> None:
        self.writes.append((hive, key, name, data, value_type))
        self.set(hive, key, name, data, value_type)

    def subkeys(self, hive: RegistryHive, key: str) -> list[str]:
        hive_name, parent = self._key(hive, key)
        prefix = parent + "\\"
        names: dict[str, None] = {}
        for stored_hive, stored_key in self._values:
            if stored_hive == hive_name and stored_key.startswith(prefix):
                original = self._original[(stored_hive, stored_key)]
                names[original[len(prefix) :].split("\\", 1)[0]] = None
        return list(names)


class FakeSecedit:
    """Records applied user rights and serves them back on export."""

    def __init__(self, rights: Mapping[str, Sequence[str]] | None = None) -> None:
        self.rights: dict[str, list[str]] = {
            right: list(holders) for right, holders in (rights or {}).items()
        }
        self.applied: list[dict[str, list[str]]] = []
        self.ignore_apply = False

    def export_user_rights(self) -> dict[str, list[str]]:
        return {right: list(holders) for right, holders in self.rights.items()}

    def apply_user_rights(self, rights: Mapping[str, Sequence[str]]) -> None:
        applied = {right: list(holders) for right, holders in rights.items()}
        self.applied.append(applied)
        if not self.ignore_apply:
            self.rights.update(applied)


class MemoryKeyring(KeyringBackend):
    """In-memory keyring backend."""

    priority = 1

    def __init__(self, *, secure: bool = True) -> None:
        self._store: dict[tuple[str, str], str] = {}
        self.secure_storage = secure

    def get_password(self, service: str, username: str) -> str | None:
        return self._store.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._store[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self._store[(service, username)]
        except KeyError as exc:
            raise PasswordDeleteError("Secret missing") from exc
