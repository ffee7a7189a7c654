from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from dotenv import load_dotenv
from platformdirs import user_cache_dir, user_config_dir

APP_NAME = "IntuneAutomation"
ENV_PREFIX = "INTUNE_AUTOMATION_"
ENV_FILE_NAME = "settings.env"
CLIENT_SECRET_KEY = "client_secret"

GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"
DEFAULT_GRAPH_SCOPES: tuple[str, ...] = (GRAPH_DEFAULT_SCOPE,)

# Application permissions the automations rely on when running app-only.
REQUIRED_APP_ROLES: tuple[str, ...] = (
    "DeviceManagementConfiguration.ReadWrite.All",
    "DeviceManagementManagedDevices.Read.All",
    "DeviceManagementScripts.ReadWrite.All",
    "PrinterShare.Read.All",
)

DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_CONCURRENCY = 8


def config_dir() -> Path:
    path = Path(user_config_dir(APP_NAME, roaming=True))
    path.mkdir(parents=True, exist_ok=True)
    return path


def cache_dir() -> Path:
    path = Path(user_cache_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


def log_dir() -> Path:
    path = cache_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_file_path(explicit: Path | None) -> Path:
    if explicit is not None:
        return explicit
    return config_dir() / ENV_FILE_NAME


@dataclass(slots=True)
class Settings:
    """Tenant, app registration and runtime knobs shared by every automation.

    The automations run unattended, so authentication is either a bearer token
    obtained elsewhere (``az account get-access-token`` in CI) or the MSAL
    client-credentials flow using ``client_id`` and a client secret.
    """

    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    authority: str | None = None
    graph_token: str | None = None
    graph_scopes: list[str] = field(default_factory=lambda: list(DEFAULT_GRAPH_SCOPES))
    page_size: int = DEFAULT_PAGE_SIZE
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    def configured_scopes(self) -> Iterable[str]:
        """Return deduplicated scopes preserving order."""

        seen = set[str]()
        for scope in self.graph_scopes:
            if scope and scope not in seen:
                seen.add(scope)
                yield scope

    @property
    def has_client_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id)

    def derive_authority(self) -> str:
        if self.authority:
            return self.authority
        if not self.tenant_id:
            raise ValueError("Tenant ID is required to derive an authority")
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class SettingsManager:
    """Load settings from the environment, falling back to the managed env file."""

    def __init__(self, env_file: Path | None = None) -> None:
        self._env_file = _env_file_path(env_file)

    @property
    def env_file(self) -> Path:
        return self._env_file

    def load(self) -> Settings:
        load_dotenv(self._env_file, override=False)

        settings = Settings(
            tenant_id=self._get_env("TENANT_ID"),
            client_id=self._get_env("CLIENT_ID"),
            client_secret=self._get_env("CLIENT_SECRET"),
            authority=self._get_env("AUTHORITY"),
            # CI exports the bare name after `az account get-access-token`.
            graph_token=self._get_env("GRAPH_TOKEN") or os.getenv("GRAPH_TOKEN") or None,
        )

        scopes = self._get_scopes_from_env()
        if scopes:
            settings.graph_scopes = scopes
        settings.page_size = self._get_int("PAGE_SIZE", DEFAULT_PAGE_SIZE)
        settings.max_concurrency = self._get_int(
            "MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY
        )
        return settings

    def _get_env(self, name: str) -> str | None:
        return os.getenv(f"{ENV_PREFIX}{name}") or None

    def _get_int(self, name: str, default: int) -> int:
        raw = self._get_env(name)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc
        if value < 1:
            raise ValueError(f"{ENV_PREFIX}{name} must be positive, got {value}")
        return value

    def _get_scopes_from_env(self) -> list[str] | None:
        raw = self._get_env("SCOPES")
        if not raw:
            return None
        scopes = [scope.strip() for scope in raw.split(";") if scope.strip()]
        return scopes or None


__all__ = [
    "APP_NAME",
    "CLIENT_SECRET_KEY",
    "DEFAULT_GRAPH_SCOPES",
    "GRAPH_DEFAULT_SCOPE",
    "REQUIRED_APP_ROLES",
    "Settings",
    "SettingsManager",
    "cache_dir",
    "config_dir",
    "log_dir",
]
