from __future__ import annotations

from intune_automation.probes.registry import RegistryBackend, RegistryHive
from intune_automation.utils import get_logger


logger = get_logger(__name__)

ENROLLMENTS_KEY = r"SOFTWARE\Microsoft\Enrollments"
IDENTITY_CACHE_KEY = r"SOFTWARE\Microsoft\IdentityStore\Cache"
PROFILE_LIST_KEY = r"SOFTWARE\Microsoft\Windows NT\CurrentVersion\ProfileList"

# Azure AD users, then domain or local accounts.
USER_SID_PREFIXES = ("S-1-12-1-", "S-1-5-21-")


def _read_str(registry: RegistryBackend, key: str, name: str) -> str | None:
    value = registry.read_value(RegistryHive.HKLM, key, name)
    if value is None or not isinstance(value.data, str):
        return None
    return value.data.strip() or None


def _read_int(registry: RegistryBackend, key: str, name: str) -> int:
    value = registry.read_value(RegistryHive.HKLM, key, name)
    if value is None or not isinstance(value.data, int):
        return 0
    return value.data


def enrollment_upn(registry: RegistryBackend) -> str | None:
    """UPN recorded by the MDM enrollment, if any."""

    for enrollment in sorted(registry.subkeys(RegistryHive.HKLM, ENROLLMENTS_KEY)):
        upn = _read_str(registry, f"{ENROLLMENTS_KEY}\\{enrollment}", "UPN")
        if upn:
            return upn
    return None


def sid_for_upn(registry: RegistryBackend, upn: str) -> str | None:
    wanted = upn.casefold()
    for sid in sorted(registry.subkeys(RegistryHive.HKLM, IDENTITY_CACHE_KEY)):
        key = f"{IDENTITY_CACHE_KEY}\\{sid}\\IdentityCache\\{sid}"
        user_name = _read_str(registry, key, "UserName")
        if user_name and user_name.casefold() == wanted:
            return sid
    return None


def latest_profile_sid(registry: RegistryBackend) -> str | None:
    """User profile SID with the most recent load time."""

    best: tuple[int, str] | None = None
    for sid in sorted(registry.subkeys(RegistryHive.HKLM, PROFILE_LIST_KEY)):
        if not sid.upper().startswith(USER_SID_PREFIXES) or sid.lower().endswith(".bak"):
            continue
        key = f"{PROFILE_LIST_KEY}\\{sid}"
        high = _read_int(registry, key, "LocalProfileLoadTimeHigh")
        low = _read_int(registry, key, "LocalProfileLoadTimeLow")
        loaded = (high << 32) | low
        if best is None or loaded > best[0]:
            best = (loaded, sid)
    return best[1] if best else None


def find_primary_user_sid(registry: RegistryBackend) -> str | None:
    upn = enrollment_upn(registry)
    if upn:
        sid = sid_for_upn(registry, upn)
        if sid:
            logger.debug("Primary user from enrollment", upn=upn, sid=sid)
            return sid
        logger.debug("Enrollment UPN not in identity cache", upn=upn)

    sid = latest_profile_sid(registry)
    if sid:
        logger.debug("Primary user from most recent profile", sid=sid)
    return sid


__all__ = [
    "ENROLLMENTS_KEY",
    "IDENTITY_CACHE_KEY",
    "PROFILE_LIST_KEY",
    "enrollment_upn",
    "find_primary_user_sid",
    "latest_profile_sid",
    "sid_for_upn",
]
