"""Authentication utilities for the Intune automations."""

from .types import AccessToken, TokenProvider
from .auth_manager import AuthManager, StaticTokenProvider, resolve_token_provider
from .permission_checker import PermissionChecker
from .secret_store import InsecureKeyringError, SecretStore

__all__ = [
    "AccessToken",
    "TokenProvider",
    "AuthManager",
    "StaticTokenProvider",
    "resolve_token_provider",
    "PermissionChecker",
    "SecretStore",
    "InsecureKeyringError",
]
