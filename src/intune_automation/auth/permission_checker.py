from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Sequence

from intune_automation.config.settings import REQUIRED_APP_ROLES


def decode_claims(token: str) -> dict[str, Any]:
    """Decode the (unverified) payload segment of a JWT access token."""

    parts = token.split(".")
    if len(parts) < 2:
        return {}
    padding = "=" * (-len(parts[1]) % 4)
    try:
        payload = base64.urlsafe_b64decode(parts[1] + padding)
        claims = json.loads(payload)
    except (binascii.Error, ValueError):
        return {}
    return claims if isinstance(claims, dict) else {}


class PermissionChecker:
    """Compare the permissions carried by a Graph token with what the automations use.

    App-only tokens list application permissions in the ``roles`` claim while
    delegated tokens (``az account get-access-token`` as a user) use ``scp``.
    A ``*.ReadWrite.All`` grant satisfies the matching ``*.Read.All``.
    """

    def __init__(self, required: Sequence[str] | None = None) -> None:
        self._required = list(required or REQUIRED_APP_ROLES)

    def granted(self, access_token: str) -> set[str]:
        claims = decode_claims(access_token)
        granted: set[str] = set()
        roles = claims.get("roles")
        if isinstance(roles, list):
            granted.update(str(role) for role in roles)
        scopes = claims.get("scp")
        if isinstance(scopes, str):
            granted.update(scopes.split())
        return granted

    def missing(self, access_token: str) -> list[str]:
        granted = self.granted(access_token)
        missing: list[str] = []
        for permission in self._required:
            if permission in granted:
                continue
            if permission.endswith(".Read.All"):
                upgraded = permission.replace(".Read.All", ".ReadWrite.All")
                if upgraded in granted:
                    continue
            missing.append(permission)
        return missing


__all__ = ["PermissionChecker", "decode_claims"]
