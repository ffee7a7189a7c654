"""Sub-commands that manage the client secret kept in the OS keyring."""

from __future__ import annotations

import argparse
import getpass
import sys
from typing import Callable

from intune_automation.auth import SecretStore
from intune_automation.bootstrap import load_settings
from intune_automation.graph.errors import AuthenticationError
from intune_automation.utils import get_logger


logger = get_logger(__name__)

# Swapped out in tests so nothing touches the real keyring.
secret_store_factory: Callable[[], SecretStore] = SecretStore


def _client_id(args: argparse.Namespace) -> str:
    client_id = args.client_id or load_settings(args.env_file).client_id
    if not client_id:
        raise AuthenticationError(
            "No client id given; pass --client-id or set INTUNE_AUTOMATION_CLIENT_ID"
        )
    return client_id


def _read_secret(args: argparse.Namespace) -> str:
    if args.secret_stdin:
        return sys.stdin.readline().strip()
    return getpass.getpass("Client secret: ").strip()


def store_secret(args: argparse.Namespace) -> int:
    client_id = _client_id(args)
    secret = _read_secret(args)
    if not secret:
        raise AuthenticationError("An empty client secret was supplied")
    secret_store_factory().save_client_secret(client_id, secret)
    print(f"Stored client secret for {client_id}")
    return 0


def forget_secret(args: argparse.Namespace) -> int:
    client_id = _client_id(args)
    secret_store_factory().forget_client_secret(client_id)
    print(f"Removed client secret for {client_id}")
    return 0


__all__ = ["forget_secret", "secret_store_factory", "store_secret"]
