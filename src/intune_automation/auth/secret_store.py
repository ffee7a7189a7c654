from __future__ import annotations

import os
from typing import Final

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from intune_automation.config.settings import APP_NAME, CLIENT_SECRET_KEY
from intune_automation.utils import get_logger


logger = get_logger(__name__)

ALLOW_INSECURE_ENV: Final[str] = "INTUNE_AUTOMATION_ALLOW_INSECURE_KEYRING"

_INSECURE_NAME_TOKENS: Final = ("plaintext", "unencrypted", "insecure")
_INSECURE_MODULES: Final = (
    "keyring.backends.null",
    "keyring.backends.fail",
    "keyrings.alt.file",
)


class InsecureKeyringError(RuntimeError):
    """The active keyring backend would store the client secret unencrypted."""


def backend_name(backend: KeyringBackend) -> str:
    cls = type(backend)
    return f"{cls.__module__}.{cls.__name__}"


def is_secure_backend(backend: KeyringBackend) -> bool:
    declared = getattr(backend, "secure_storage", None)
    if isinstance(declared, bool):
        return declared
    if any(token in type(backend).__name__.lower() for token in _INSECURE_NAME_TOKENS):
        return False
    module = type(backend).__module__
    if module.startswith("keyring.backends.chainer"):
        # A chain is only as safe as its weakest member.
        members = getattr(backend, "backends", ())
        return bool(members) and all(is_secure_backend(member) for member in members)
    return not module.startswith(_INSECURE_MODULES)


def _insecure_allowed(explicit: bool | None) -> bool:
    if explicit is not None:
        return explicit
    return (os.getenv(ALLOW_INSECURE_ENV) or "").strip().lower() in {"1", "true", "yes", "on"}


def client_secret_key(client_id: str) -> str:
    return f"{client_id}:{CLIENT_SECRET_KEY}"


class SecretStore:
    """Keeps app registration client secrets in the OS keyring.

    Entries are keyed by client id, so one machine can hold secrets for
    several tenants' app registrations.
    """

    def __init__(
        self,
        service_name: str = APP_NAME,
        *,
        backend: KeyringBackend | None = None,
        allow_insecure: bool | None = None,
    ) -> None:
        self._service_name = service_name
        self._backend = backend or keyring.get_keyring()
        name = backend_name(self._backend)
        if not is_secure_backend(self._backend):
            if not _insecure_allowed(allow_insecure):
                raise InsecureKeyringError(
                    f"Keyring backend {name} does not provide encrypted storage. "
                    f"Provide the client secret through the environment instead, or set "
                    f"{ALLOW_INSECURE_ENV}=1 to accept it."
                )
            logger.warning("Using insecure keyring backend", backend=name, override=ALLOW_INSECURE_ENV)
        else:
            logger.debug("Using keyring backend", backend=name)

    def client_secret(self, client_id: str) -> str | None:
        return self._backend.get_password(self._service_name, client_secret_key(client_id))

    def save_client_secret(self, client_id: str, secret: str) -> None:
        self._backend.set_password(self._service_name, client_secret_key(client_id), secret)
        logger.info("Stored client secret in keyring", service=self._service_name, client_id=client_id)

    def forget_client_secret(self, client_id: str) -> None:
        try:
            self._backend.delete_password(self._service_name, client_secret_key(client_id))
        except PasswordDeleteError:
            logger.debug("No client secret stored", service=self._service_name, client_id=client_id)


__all__ = [
    "ALLOW_INSECURE_ENV",
    "InsecureKeyringError",
    "SecretStore",
    "client_secret_key",
    "is_secure_backend",
]
