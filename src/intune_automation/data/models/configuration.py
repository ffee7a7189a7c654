from __future__ import annotations

from typing import Any

from pydantic import Field

from .common import GraphBaseModel, GraphResource


class TemplateReference(GraphBaseModel):
    template_id: str | None = Field(default=None, alias="templateId")
    template_family: str | None = Field(default=None, alias="templateFamily")
    template_display_name: str | None = Field(
        default=None, alias="templateDisplayName"
    )
    template_display_version: str | None = Field(
        default=None, alias="templateDisplayVersion"
    )


class ConfigurationPolicy(GraphResource):
    """Settings catalog policy; security baselines are stored the same way."""

    name: str
    description: str | None = None
    platforms: str | None = None
    technologies: str | None = None
    setting_count: int | None = Field(default=None, alias="settingCount")
    is_assigned: bool | None = Field(default=None, alias="isAssigned")
    role_scope_tag_ids: list[str] | None = Field(default=None, alias="roleScopeTagIds")
    template_reference: TemplateReference | None = Field(
        default=None, alias="templateReference"
    )


class SettingOption(GraphBaseModel):
    item_id: str = Field(alias="itemId")
    display_name: str | None = Field(default=None, alias="displayName")
    name: str | None = None


class SettingDefinition(GraphResource):
    display_name: str | None = Field(default=None, alias="displayName")
    name: str | None = None
    description: str | None = None
    category_id: str | None = Field(default=None, alias="categoryId")
    options: list[SettingOption] | None = None


class PolicySetting(GraphResource):
    """One top-level entry of a policy's settings collection.

    ``setting_instance`` stays a raw dict: the instance tree is polymorphic and
    arbitrarily nested, so it is walked rather than modelled.
    """

    setting_instance: dict[str, Any] = Field(alias="settingInstance")
    setting_definitions: list[SettingDefinition] | None = Field(
        default=None, alias="settingDefinitions"
    )
