from __future__ import annotations

from typing import Sequence

from intune_automation.probes.base import ProbeError, ProbeResult
from intune_automation.probes.primary_user import find_primary_user_sid
from intune_automation.probes.registry import RegistryBackend
from intune_automation.probes.secedit import SeceditRunner, normalise_principal
from intune_automation.utils import get_logger


logger = get_logger(__name__)

DEFAULT_RIGHT = "SeInteractiveLogonRight"


class LogonRightProbe:
    """Make sure the primary user (and any extra SIDs) hold a user right."""

    def __init__(
        self,
        registry: RegistryBackend,
        secedit: SeceditRunner,
        *,
        right: str = DEFAULT_RIGHT,
        sid: str | None = None,
        extra_sids: Sequence[str] = (),
    ) -> None:
        self._registry = registry
        self._secedit = secedit
        self.right = right
        self._sid = sid
        self._extra_sids = list(extra_sids)

    def required_sids(self) -> list[str]:
        primary = self._sid or find_primary_user_sid(self._registry)
        if not primary:
            raise ProbeError("Could not determine the primary user; pass --sid")
        required: list[str] = []
        for sid in [primary, *self._extra_sids]:
            principal = normalise_principal(sid)
            if principal not in required:
                required.append(principal)
        return required

    def _missing(self, holders: Sequence[str], required: Sequence[str]) -> list[str]:
        held = {normalise_principal(entry) for entry in holders}
        return [sid for sid in required if sid not in held]

    def detect(self) -> ProbeResult:
        required = self.required_sids()
        holders = self._secedit.export_user_rights().get(self.right, [])
        missing = self._missing(holders, required)
        if missing:
            return ProbeResult(False, f"{self.right} missing for {', '.join(missing)}")
        return ProbeResult(True, f"{self.right} granted to {', '.join(required)}")

    def remediate(self) -> ProbeResult:
        required = self.required_sids()
        holders = self._secedit.export_user_rights().get(self.right, [])
        missing = self._missing(holders, required)
        if not missing:
            return ProbeResult(True, f"{self.right} already granted to {', '.join(required)}")

        logger.info("Granting user right", right=self.right, sids=", ".join(missing))
        self._secedit.apply_user_rights({self.right: [*holders, *missing]})

        after = self.detect()
        if not after.compliant:
            return ProbeResult(False, f"secedit did not grant the right: {after.message}")
        return ProbeResult(True, f"Granted {self.right} to {', '.join(missing)}")


__all__ = ["DEFAULT_RIGHT", "LogonRightProbe"]
