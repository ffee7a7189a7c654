from __future__ import annotations

import glob
import os
from enum import StrEnum
from pathlib import Path
from typing import Sequence

from intune_automation.probes.base import ProbeResult


class MatchMode(StrEnum):
    ALL = "all"
    ANY = "any"


def expand_pattern(pattern: str) -> list[Path]:
    """Files matching ``pattern`` after expanding ``%VAR%``/``$VAR`` and ``~``."""

    expanded = os.path.expanduser(os.path.expandvars(pattern))
    if any(char in expanded for char in "*?["):
        candidates = [Path(match) for match in glob.glob(expanded, recursive=True)]
    else:
        candidates = [Path(expanded)]
    return sorted(path for path in candidates if path.is_file())


class FilePresenceProbe:
    def __init__(
        self,
        patterns: Sequence[str],
        *,
        mode: MatchMode = MatchMode.ALL,
        min_size: int | None = None,
    ) -> None:
        if not patterns:
            raise ValueError("At least one path is required")
        self.patterns = list(patterns)
        self.mode = MatchMode(mode)
        self.min_size = min_size

    def _satisfied(self, pattern: str) -> bool:
        for path in expand_pattern(pattern):
            if self.min_size is None or path.stat().st_size >= self.min_size:
                return True
        return False

    def detect(self) -> ProbeResult:
        found = [pattern for pattern in self.patterns if self._satisfied(pattern)]
        missing = [pattern for pattern in self.patterns if pattern not in found]
        size_note = f" (at least {self.min_size} bytes)" if self.min_size is not None else ""

        if self.mode is MatchMode.ALL:
            if missing:
                return ProbeResult(False, f"Missing{size_note}: {', '.join(missing)}")
            return ProbeResult(True, f"Found{size_note}: {', '.join(found)}")

        if found:
            return ProbeResult(True, f"Found{size_note}: {', '.join(found)}")
        return ProbeResult(False, f"None found{size_note}: {', '.join(missing)}")


__all__ = ["FilePresenceProbe", "MatchMode", "expand_pattern"]
