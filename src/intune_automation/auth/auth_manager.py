from __future__ import annotations

import re
import threading
import time
from typing import Callable, Sequence

import msal

from intune_automation.auth.permission_checker import PermissionChecker, decode_claims
from intune_automation.auth.secret_store import InsecureKeyringError, SecretStore
from intune_automation.auth.types import AccessToken, TokenProvider
from intune_automation.config.settings import DEFAULT_GRAPH_SCOPES, Settings
from intune_automation.graph.errors import AuthenticationError
from intune_automation.utils import get_logger


logger = get_logger(__name__)

# Tokens this close to expiry are treated as expired.
_EXPIRY_SKEW_SECONDS = 60
_BEARER_PREFIX = re.compile(r"^bearer\b\s*", re.IGNORECASE)


class StaticTokenProvider:
    """Serve a bearer token obtained outside the process.

    This is how the CI workflow runs: ``az account get-access-token`` against
    ``https://graph.microsoft.com`` and the token is handed over verbatim.
    """

    def __init__(self, token: str, *, checker: PermissionChecker | None = None) -> None:
        token = _BEARER_PREFIX.sub("", token.strip())
        if not token:
            raise AuthenticationError("An empty Graph token was supplied")
        claims = decode_claims(token)
        expires_on = claims.get("exp")
        self._token = AccessToken(
            token,
            int(expires_on) if isinstance(expires_on, (int, float)) else int(time.time()) + 3600,
        )
        _log_missing_permissions(token, checker or PermissionChecker())

    @property
    def expires_on(self) -> int:
        return self._token.expires_on

    def __call__(self, _scopes: Sequence[str]) -> AccessToken:
        if self._token.expires_on - _EXPIRY_SKEW_SECONDS <= time.time():
            raise AuthenticationError(
                "The supplied Graph token has expired; acquire a fresh token and rerun"
            )
        return self._token


class AuthManager:
    """MSAL confidential-client (client credentials) authentication.

    The automations run unattended, so the app registration authenticates as
    itself with a client secret and receives application permissions.
    """

    def __init__(self) -> None:
        self._app: msal.ConfidentialClientApplication | None = None
        self._settings: Settings | None = None
        self._lock = threading.RLock()
        self._permission_checker = PermissionChecker()
        self._checked_permissions = False

    def configure(self, settings: Settings, *, client_secret: str | None = None) -> None:
        """Create the MSAL application for the configured tenant and client id.

        Raises:
            AuthenticationError: If tenant, client id or secret are missing or
                MSAL rejects the authority.
        """
        if not settings.has_client_credentials:
            raise AuthenticationError(
                "Tenant ID and client ID are required for client-credentials sign-in"
            )
        secret = client_secret or settings.client_secret
        if not secret:
            raise AuthenticationError(
                "No client secret available; set INTUNE_AUTOMATION_CLIENT_SECRET "
                "or store it in the keyring"
            )

        authority = settings.derive_authority()
        try:
            self._app = msal.ConfidentialClientApplication(
                client_id=settings.client_id,
                authority=authority,
                client_credential=secret,
            )
        except ValueError as exc:
            logger.error("Invalid MSAL configuration", authority=authority, error=str(exc))
            raise AuthenticationError(f"Invalid authority: {exc}") from exc
        self._settings = settings
        self._checked_permissions = False
        logger.info(
            "Configured MSAL ConfidentialClientApplication",
            authority=authority,
            client_id=settings.client_id,
        )

    def token_provider(self) -> TokenProvider:
        def provider(scopes: Sequence[str]) -> AccessToken:
            return self.acquire_token(scopes)

        return provider

    def acquire_token(self, scopes: Sequence[str] | None = None) -> AccessToken:
        requested = list(scopes or DEFAULT_GRAPH_SCOPES)
        with self._lock:
            app = self._ensure_app()
            # MSAL serves cached app tokens until they near expiry.
            result = app.acquire_token_for_client(scopes=requested)
            token = self._process_result(result)
            if not self._checked_permissions:
                _log_missing_permissions(token.token, self._permission_checker)
                self._checked_permissions = True
            return token

    def _process_result(self, result: dict[str, object] | None) -> AccessToken:
        if not result:
            raise AuthenticationError("MSAL returned no token response")
        if "error" in result:
            error_desc = result.get("error_description", result.get("error"))
            raise AuthenticationError(message=f"MSAL error: {error_desc}")

        access_token = result.get("access_token")
        if not isinstance(access_token, str):
            raise AuthenticationError("MSAL response missing access token")
        expires_in = result.get("expires_in")
        expiry = int(time.time()) + (
            int(expires_in) if isinstance(expires_in, (int, str)) else 3600
        )
        return AccessToken(access_token, expiry)

    def _ensure_app(self) -> msal.ConfidentialClientApplication:
        if not self._app:
            raise AuthenticationError("Authentication has not been configured")
        return self._app


def _log_missing_permissions(token: str, checker: PermissionChecker) -> None:
    missing = checker.missing(token)
    if missing:
        logger.warning(
            "Graph token lacks permissions some automations need",
            missing=sorted(missing),
        )


def resolve_token_provider(
    settings: Settings,
    *,
    graph_token: str | None = None,
    secret_store_factory: Callable[[], SecretStore] = SecretStore,
) -> TokenProvider:
    """Pick a token source: explicit token, configured token, then client credentials."""

    token = graph_token or settings.graph_token
    if token:
        logger.debug("Using supplied Graph bearer token")
        return StaticTokenProvider(token)

    if not settings.has_client_credentials:
        raise AuthenticationError(
            "No Graph token supplied and no tenant/client id configured; pass "
            "--graph-token or set INTUNE_AUTOMATION_TENANT_ID and "
            "INTUNE_AUTOMATION_CLIENT_ID"
        )

    secret = settings.client_secret
    if not secret:
        try:
            store = secret_store_factory()
        except InsecureKeyringError as exc:
            raise AuthenticationError(str(exc)) from exc
        secret = store.client_secret(settings.client_id)

    manager = AuthManager()
    manager.configure(settings, client_secret=secret)
    return manager.token_provider()


__all__ = ["AuthManager", "StaticTokenProvider", "resolve_token_provider"]
