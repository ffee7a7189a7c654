"""
Entry point for running intune_automation as a module.

This file enables:
- `python -m intune_automation`
- `uv run python -m intune_automation`
"""

from __future__ import annotations

from intune_automation import main

if __name__ == "__main__":
    main()
