from __future__ import annotations

from dataclasses import dataclass


class ProbeError(RuntimeError):
    """The probe could not run to a verdict (missing input, OS tool failed)."""


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of a detection or remediation.

    Proactive remediations read the exit code: 0 means compliant (or fixed),
    anything else triggers the remediation script or marks it failed.
    """

    compliant: bool
    message: str

    @property
    def exit_code(self) -> int:
        return 0 if self.compliant else 1


__all__ = ["ProbeError", "ProbeResult"]
