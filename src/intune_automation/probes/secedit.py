from __future__ import annotations

import subprocess
import tempfile
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from intune_automation.probes.base import ProbeError
from intune_automation.utils import get_logger


logger = get_logger(__name__)

PRIVILEGE_SECTION = "Privilege Rights"

UserRights = dict[str, list[str]]


def normalise_principal(entry: str) -> str:
    """``*S-1-5-32-544`` and ``S-1-5-32-544`` name the same principal."""

    value = entry.strip()
    candidate = value.lstrip("*").upper()
    if candidate.startswith("S-"):
        return candidate
    return value


def parse_privilege_rights(text: str) -> UserRights:
    """Read the ``[Privilege Rights]`` section of a secedit export."""

    rights: UserRights = {}
    section: str | None = None
    for raw_line in text.lstrip("\ufeff").splitlines():
        line = raw_line.strip()
        if not line or line.startswith(";"):
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip()
            continue
        if section is None or section.casefold() != PRIVILEGE_SECTION.casefold():
            continue
        right, separator, holders = line.partition("=")
        if not separator:
            continue
        rights[right.strip()] = [entry.strip() for entry in holders.split(",") if entry.strip()]
    return rights


def _format_principal(entry: str) -> str:
    principal = normalise_principal(entry)
    return f"*{principal}" if principal.startswith("S-") else principal


def render_inf(rights: Mapping[str, Sequence[str]]) -> str:
    """Minimal security template that only touches the given user rights."""

    lines = [
        "[Unicode]",
        "Unicode=yes",
        "[Version]",
        'signature="$CHICAGO$"',
        "Revision=1",
        f"[{PRIVILEGE_SECTION}]",
    ]
    for right, holders in rights.items():
        lines.append(f"{right} = " + ",".join(_format_principal(entry) for entry in holders))
    return "\r\n".join(lines) + "\r\n"


def _decode(data: bytes) -> str:
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("utf-16-le", errors="replace")


class SeceditRunner(Protocol):
    def export_user_rights(self) -> UserRights: ...

    def apply_user_rights(self, rights: Mapping[str, Sequence[str]]) -> None: ...


class SubprocessSecedit:
    """Drive ``secedit.exe`` through temporary INF files."""

    def __init__(self, executable: str = "secedit", *, timeout: float = 120.0) -> None:
        self._executable = executable
        self._timeout = timeout

    def _run(self, *args: str) -> None:
        command = [self._executable, *args]
        logger.debug("Running secedit", command=" ".join(command))
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ProbeError(f"Could not run secedit: {exc}") from exc
        if completed.returncode != 0:
            output = _decode(completed.stdout or completed.stderr or b"").strip()
            raise ProbeError(
                f"secedit {args[0]} failed with exit code {completed.returncode}: {output}"
            )

    def export_user_rights(self) -> UserRights:
        with tempfile.TemporaryDirectory(prefix="intune-automation-") as workdir:
            cfg = Path(workdir) / "user_rights.inf"
            self._run("/export", "/cfg", str(cfg), "/areas", "USER_RIGHTS", "/quiet")
            return parse_privilege_rights(_decode(cfg.read_bytes()))

    def apply_user_rights(self, rights: Mapping[str, Sequence[str]]) -> None:
        with tempfile.TemporaryDirectory(prefix="intune-automation-") as workdir:
            cfg = Path(workdir) / "user_rights.inf"
            database = Path(workdir) / "user_rights.sdb"
            cfg.write_text(render_inf(rights), encoding="utf-16", newline="")
            self._run(
                "/configure",
                "/db",
                str(database),
                "/cfg",
                str(cfg),
                "/areas",
                "USER_RIGHTS",
                "/quiet",
            )
        logger.info("Applied user rights", rights=", ".join(rights))


__all__ = [
    "PRIVILEGE_SECTION",
    "SeceditRunner",
    "SubprocessSecedit",
    "UserRights",
    "normalise_principal",
    "parse_privilege_rights",
    "render_inf",
]
