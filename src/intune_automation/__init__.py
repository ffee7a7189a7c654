"""Intune administrative automations built on Microsoft Graph."""

from __future__ import annotations

__version__ = "0.1.0"


def main() -> None:
    from intune_automation.cli import main as cli_main

    raise SystemExit(cli_main())
