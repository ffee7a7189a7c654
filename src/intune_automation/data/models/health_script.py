from __future__ import annotations

import base64
import binascii
from enum import StrEnum

from pydantic import Field

from .common import GraphResource

HEALTH_SCRIPT_ODATA_TYPE = "#microsoft.graph.deviceHealthScript"


class RunAsAccount(StrEnum):
    SYSTEM = "system"
    USER = "user"


def decode_script_content(value: str | None) -> bytes | None:
    """Decode base64 script content as returned by Graph; ``None`` if absent."""

    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


class DeviceHealthScript(GraphResource):
    """Proactive remediation (detect/remediate script pair) as stored in Intune.

    Listing the collection omits the script bodies; they are only present when
    a single script is fetched by id.
    """

    display_name: str = Field(alias="displayName")
    description: str | None = None
    publisher: str | None = None
    version: str | None = None
    run_as_account: RunAsAccount | None = Field(default=None, alias="runAsAccount")
    run_as_32_bit: bool | None = Field(default=None, alias="runAs32Bit")
    enforce_signature_check: bool | None = Field(
        default=None, alias="enforceSignatureCheck"
    )
    is_global_script: bool | None = Field(default=None, alias="isGlobalScript")
    detection_script_content: str | None = Field(
        default=None, alias="detectionScriptContent"
    )
    remediation_script_content: str | None = Field(
        default=None, alias="remediationScriptContent"
    )
    role_scope_tag_ids: list[str] | None = Field(default=None, alias="roleScopeTagIds")

    @property
    def detection_script(self) -> bytes | None:
        return decode_script_content(self.detection_script_content)

    @property
    def remediation_script(self) -> bytes | None:
        return decode_script_content(self.remediation_script_content)
